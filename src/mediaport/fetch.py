"""Download remote assets into a pipeline workspace."""

from __future__ import annotations

import asyncio
import hashlib
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

import httpx
from loguru import logger

from mediaport.config import FetchConfig
from mediaport.constants import (
    DEFAULT_ASSET_EXTENSION,
    DEFAULT_DOWNLOAD_CHUNK_SIZE,
    GONE_STATUS_CODES,
)
from mediaport.utils.files import format_size, write_bytes_async
from mediaport.utils.mime import get_extension_from_mime, get_extension_from_url


class FetchSentinel(Enum):
    """Marker returned when the remote asset is confirmed gone."""

    DELETE = "delete"


DELETE_SENTINEL = FetchSentinel.DELETE


class _Preflight(Enum):
    PROCEED = "proceed"
    OVERSIZE = "oversize"
    GONE = "gone"


def asset_filename(url: str, content_type: str | None) -> str:
    """Stable workspace filename for ``url``.

    md5 of the URL plus an extension taken from the content type, then the
    URL path, then a generic fallback. ``.gifv`` links are really MP4s.

    Examples:
        >>> asset_filename("https://i.example.com/clip.gifv", "text/html")[-4:]
        '.mp4'
    """
    digest = hashlib.md5(url.encode("utf-8")).hexdigest()
    if urlparse(url).path.lower().endswith(".gifv") or url.lower().endswith(".gifv"):
        return f"{digest}.mp4"
    ext = (
        get_extension_from_mime(content_type)
        or get_extension_from_url(url)
        or DEFAULT_ASSET_EXTENSION
    )
    return f"{digest}{ext}"


def is_connection_reset(exc: BaseException) -> bool:
    """Check whether ``exc`` (or anything it was raised from) is a connection reset."""
    current: BaseException | None = exc
    for _ in range(10):
        if current is None:
            return False
        if isinstance(current, ConnectionResetError):
            return True
        message = str(current)
        if "ECONNRESET" in message or "Connection reset" in message:
            return True
        current = current.__cause__ or current.__context__
    return False


def _content_length(response: httpx.Response) -> int | None:
    value = response.headers.get("content-length")
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class Fetcher:
    """Fetches assets with bounded concurrency.

    ``fetch`` returns the local path on success, :data:`DELETE_SENTINEL` when
    the asset is confirmed gone (403/404/410 or connection reset), and None
    for everything that should leave the reference untouched: oversized
    video, timeouts, DNS failures, 5xx.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: FetchConfig | None = None,
        max_video_bytes: int | None = None,
    ) -> None:
        self.client = client
        self.config = config or FetchConfig()
        self.max_video_bytes = max_video_bytes
        self._semaphore = asyncio.Semaphore(self.config.concurrency)

    @property
    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.config.user_agent}

    def _too_large(self, size: int | None) -> bool:
        return (
            self.max_video_bytes is not None
            and size is not None
            and size > self.max_video_bytes
        )

    def _log_oversize(self, size: int) -> None:
        logger.warning(
            f"Skipping video: too large ({format_size(size, 'MB')} > "
            f"{format_size(self.max_video_bytes or 0, 'MB')})"
        )

    async def fetch(
        self,
        url: str,
        workspace: Path,
        is_video: bool = False,
    ) -> Path | FetchSentinel | None:
        """Download ``url`` into ``workspace``."""
        async with self._semaphore:
            logger.info(f"Downloading: {url[:80]}...")
            if is_video:
                preflight = await self._preflight(url)
                if preflight is _Preflight.GONE:
                    return DELETE_SENTINEL
                if preflight is _Preflight.OVERSIZE:
                    return None
            return await self._download(url, workspace, is_video)

    async def _preflight(self, url: str) -> _Preflight:
        """HEAD request checking the declared size of a video."""
        try:
            response = await self.client.head(
                url,
                headers=self._headers,
                timeout=self.config.head_timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in GONE_STATUS_CODES:
                logger.warning(f"[{status}] (HEAD) asset confirmed unreachable: {url[:80]}")
                return _Preflight.GONE
            logger.debug(f"HEAD {status} for {url[:80]}, trying full download")
            return _Preflight.PROCEED
        except httpx.HTTPError as e:
            logger.debug(f"HEAD failed for {url[:80]}: {e}, trying full download")
            return _Preflight.PROCEED

        declared = _content_length(response)
        if self._too_large(declared):
            self._log_oversize(declared)
            return _Preflight.OVERSIZE
        return _Preflight.PROCEED

    async def _download(
        self,
        url: str,
        workspace: Path,
        is_video: bool,
    ) -> Path | FetchSentinel | None:
        try:
            async with self.client.stream(
                "GET",
                url,
                headers=self._headers,
                timeout=self.config.timeout,
                follow_redirects=True,
            ) as response:
                response.raise_for_status()

                declared = _content_length(response)
                if is_video and self._too_large(declared):
                    self._log_oversize(declared)
                    return None

                content_type = response.headers.get("content-type")
                chunks: list[bytes] = []
                received = 0
                async for chunk in response.aiter_bytes(DEFAULT_DOWNLOAD_CHUNK_SIZE):
                    received += len(chunk)
                    if is_video and self._too_large(received):
                        self._log_oversize(received)
                        return None
                    chunks.append(chunk)

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in GONE_STATUS_CODES:
                logger.warning(f"[{status}] asset unreachable, will be removed: {url[:80]}")
                return DELETE_SENTINEL
            logger.warning(f"HTTP {status} downloading: {url[:80]}")
            return None
        except ConnectionResetError:
            logger.warning(f"Connection reset, asset will be removed: {url[:80]}")
            return DELETE_SENTINEL
        except httpx.HTTPError as e:
            if is_connection_reset(e):
                logger.warning(f"Connection reset, asset will be removed: {url[:80]}")
                return DELETE_SENTINEL
            logger.warning(f"Download failed: {url[:80]} - {type(e).__name__}: {e}")
            return None

        output_path = workspace / asset_filename(url, content_type)
        await write_bytes_async(output_path, b"".join(chunks))
        logger.info(f"Downloaded {output_path.name} ({format_size(received)})")
        return output_path
