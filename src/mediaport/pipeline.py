"""Media externalization pipeline.

Discovery -> domain policy -> per-URL fetch/transcode/upload -> rewrite ->
cleanup -> optional write-back. Per-asset problems only ever leave that
asset's reference alone (or remove it when the asset is confirmed gone);
anything worse returns the document untouched.
"""

from __future__ import annotations

import asyncio
import tempfile
import uuid
from collections.abc import AsyncIterator, Iterator, Mapping
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from mediaport.config import MediaportConfig, ProcessConfig
from mediaport.constants import WORKSPACE_PREFIX
from mediaport.discovery import DiscoveryResult, discover_media
from mediaport.fetch import DELETE_SENTINEL, Fetcher
from mediaport.patterns import MediaKind
from mediaport.policy import DomainPolicy, PolicyDecision
from mediaport.rewrite import (
    DELETE,
    UNCHANGED,
    OutcomeKind,
    ProcessingOutcome,
    rewrite_document,
)
from mediaport.storage import StorageProvider, StorageUnavailableError
from mediaport.transcode import Transcoder
from mediaport.utils.files import atomic_write_text_async

ConfigLike = MediaportConfig | ProcessConfig | Mapping[str, Any] | None


def coerce_config(config: ConfigLike) -> MediaportConfig:
    """Accept the full config, just the process section, or a raw settings dict.

    A raw dict may be a whole settings blob (with ``process`` or
    ``IMAGE_PROCESS_CONFIG``) or the flat IMAGE_PROCESS_CONFIG block itself.
    """
    if config is None:
        return MediaportConfig()
    if isinstance(config, MediaportConfig):
        return config
    if isinstance(config, ProcessConfig):
        return MediaportConfig(process=config)
    data = dict(config)
    if set(data) & set(MediaportConfig.model_fields) or "IMAGE_PROCESS_CONFIG" in data:
        return MediaportConfig.model_validate(data)
    return MediaportConfig(process=ProcessConfig.model_validate(data))


def new_asset_name(prefix: str, extension: str) -> str:
    """Unique, type-prefixed name for an uploaded asset.

    Examples:
        >>> name = new_asset_name("img", ".avif")
        >>> name.startswith("img_") and name.endswith(".avif")
        True
    """
    unique = uuid.uuid4().hex
    return f"{prefix}_{unique}{extension}" if prefix else f"{unique}{extension}"


@dataclass
class PipelineResult:
    """Rewritten document plus what happened to each URL."""

    content: str
    outcomes: dict[str, ProcessingOutcome] = field(default_factory=dict)
    error: str | None = None  # set when the run fell back to the original

    @property
    def replaced(self) -> dict[str, str]:
        return {
            url: outcome.new_url
            for url, outcome in self.outcomes.items()
            if outcome.kind is OutcomeKind.REPLACED and outcome.new_url
        }

    @property
    def deleted(self) -> list[str]:
        return [url for url, outcome in self.outcomes.items() if outcome.is_delete]


class MediaPipeline:
    """One configured pipeline; every :meth:`run` owns its own workspace."""

    def __init__(
        self,
        config: ConfigLike = None,
        storage: StorageProvider | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        transcoder: Transcoder | None = None,
    ) -> None:
        self.config = coerce_config(config)
        self.storage = storage
        self.client = client
        self.transcoder = transcoder or Transcoder(self.config.process)
        self.policy = DomainPolicy(
            self.config.domains,
            extra_ignored=getattr(storage, "hosted_domains", ()),
        )

    @asynccontextmanager
    async def _http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
            return
        async with httpx.AsyncClient(
            headers={"User-Agent": self.config.fetch.user_agent},
            follow_redirects=True,
        ) as client:
            yield client

    @contextmanager
    def _workspace(self, source_file_path: Path | None) -> Iterator[Path]:
        # Next to the document when it has a home, system temp otherwise
        parent = None
        if source_file_path is not None and source_file_path.parent.is_dir():
            parent = str(source_file_path.parent)
        with tempfile.TemporaryDirectory(
            prefix=WORKSPACE_PREFIX, dir=parent, ignore_cleanup_errors=True
        ) as temp_dir:
            logger.debug(f"Created workspace: {temp_dir}")
            yield Path(temp_dir)

    async def run(
        self,
        content: str,
        source_file_path: Path | str | None = None,
    ) -> PipelineResult:
        """Externalize every media reference in ``content``."""
        if not content:
            return PipelineResult(content=content)
        if self.storage is None:
            logger.warning("No storage provider configured. Skipping upload.")
            return PipelineResult(content=content)

        source_path = Path(source_file_path) if source_file_path else None
        try:
            working = self.policy.apply_prefix_rewrites(content)
            discovery = discover_media(working)
            if not discovery:
                logger.info("No media links found that need processing.")
                return PipelineResult(content=content)

            logger.info(f"Found {len(discovery.urls)} media URL(s) to process")
            with self._workspace(source_path) as workspace:
                async with self._http_client() as client:
                    fetcher = Fetcher(
                        client,
                        self.config.fetch,
                        max_video_bytes=self.config.process.max_video_bytes,
                    )
                    outcomes = await self._process_all(discovery, workspace, fetcher)

            new_content = rewrite_document(working, discovery.references, outcomes)

            if source_path is not None and source_path.exists():
                await atomic_write_text_async(source_path, new_content)
                logger.info(f"File '{source_path}' updated")

            return PipelineResult(content=new_content, outcomes=outcomes)
        except Exception as e:
            logger.error(f"Processing markdown media failed: {type(e).__name__}: {e}")
            return PipelineResult(content=content, error=str(e))

    async def _process_all(
        self,
        discovery: DiscoveryResult,
        workspace: Path,
        fetcher: Fetcher,
    ) -> dict[str, ProcessingOutcome]:
        urls = list(discovery.urls.items())
        results = await asyncio.gather(
            *(self._process_url(url, kind, workspace, fetcher) for url, kind in urls),
            return_exceptions=True,
        )
        outcomes: dict[str, ProcessingOutcome] = {}
        for (url, _), result in zip(urls, results):
            if isinstance(result, BaseException):
                raise result
            outcomes[url] = result
        return outcomes

    async def _process_url(
        self,
        url: str,
        media_kind: MediaKind,
        workspace: Path,
        fetcher: Fetcher,
    ) -> ProcessingOutcome:
        decision = self.policy.classify(url, media_kind)
        if decision is PolicyDecision.DELETE:
            logger.info(f"Video domain marked for removal: {url[:80]}")
            return DELETE
        if decision is PolicyDecision.IGNORE:
            logger.debug(f"Ignored domain, leaving as is: {url[:80]}")
            return UNCHANGED

        try:
            fetched = await fetcher.fetch(url, workspace, media_kind is MediaKind.VIDEO)
            if fetched is DELETE_SENTINEL:
                return DELETE
            if fetched is None:
                return UNCHANGED

            processed = await self.transcoder.transcode(fetched, media_kind, workspace)
            name = new_asset_name(self.config.process.typeid_prefix, processed.suffix)
            new_url = await self.storage.upload(processed, name)
        except StorageUnavailableError:
            raise
        except Exception as e:
            logger.warning(f"Failed to process URL ({url[:80]}): {type(e).__name__}: {e}")
            return UNCHANGED

        if not new_url:
            logger.warning(f"Upload returned no URL, keeping original: {url[:80]}")
            return UNCHANGED
        logger.info(f"Uploaded {url[:60]} -> {new_url}")
        return ProcessingOutcome.replaced(new_url)


async def process_markdown(
    content: str,
    config: ConfigLike = None,
    source_file_path: Path | str | None = None,
    storage: StorageProvider | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Externalize the media of ``content`` and return the rewritten text.

    Never raises: with no storage, or on any catastrophic failure, the
    original content comes back unchanged.

    Args:
        content: Markdown/HTML document
        config: MediaportConfig, ProcessConfig or a raw settings dict
        source_file_path: File to write the rewritten text back to, if it exists
        storage: Backend that receives the assets
        client: Optional shared HTTP client

    Returns:
        The rewritten document
    """
    try:
        pipeline = MediaPipeline(config, storage, client=client)
    except ValidationError as e:
        logger.error(f"Invalid media processing config: {e}")
        return content
    result = await pipeline.run(content, source_file_path)
    return result.content
