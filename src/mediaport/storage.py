"""Storage backends that give uploaded assets a durable public URL.

Backends are registered explicitly: :func:`default_registry` lists every
built-in type, and :func:`build_storages` turns configured entries into
instances. Nothing is discovered by scanning the filesystem.
"""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote, urlparse

import httpx
from loguru import logger

from mediaport.config import StorageEntry


class StorageError(Exception):
    """Upload of a single asset failed; other assets may still succeed."""

    pass


class StorageUnavailableError(StorageError):
    """The backend as a whole is unusable (bad credentials, missing target)."""

    pass


@runtime_checkable
class StorageProvider(Protocol):
    """Capability consumed by the pipeline.

    ``upload`` returns the public URL of the stored file, or None when the
    backend declined it. Implementations may also expose ``hosted_domains``:
    hosts their URLs live on, which the pipeline never re-processes.
    """

    id: str

    async def upload(self, local_path: Path, desired_name: str) -> str | None: ...


class LocalStorage:
    """Copies assets into a directory, e.g. one served by a static web server."""

    def __init__(
        self,
        id: str = "local",
        directory: str | Path = "./assets",
        public_base_url: str | None = None,
    ) -> None:
        self.id = id
        self.directory = Path(directory).expanduser()
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    @property
    def hosted_domains(self) -> tuple[str, ...]:
        if not self.public_base_url:
            return ()
        host = urlparse(self.public_base_url).hostname
        return (host,) if host else ()

    def _ensure_directory(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(
                f"Cannot create storage directory {self.directory}: {e}"
            ) from e

    async def upload(self, local_path: Path, desired_name: str) -> str | None:
        self._ensure_directory()
        destination = self.directory / desired_name
        try:
            await asyncio.to_thread(shutil.copyfile, local_path, destination)
        except OSError as e:
            raise StorageError(f"Copy to {destination} failed: {e}") from e

        if self.public_base_url:
            return f"{self.public_base_url}/{quote(desired_name)}"
        return destination.resolve().as_uri()


class HttpPutStorage:
    """Uploads with ``PUT {endpoint}/{name}``; WebDAV, presigned buckets, simple CDNs."""

    def __init__(
        self,
        id: str = "http-put",
        endpoint: str = "",
        public_base_url: str | None = None,
        token: str | None = None,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError("http-put storage requires an endpoint")
        self.id = id
        self.endpoint = endpoint.rstrip("/")
        self.public_base_url = (public_base_url or endpoint).rstrip("/")
        self.token = token
        self.timeout = timeout
        self._client = client

    @property
    def hosted_domains(self) -> tuple[str, ...]:
        host = urlparse(self.public_base_url).hostname
        return (host,) if host else ()

    async def upload(self, local_path: Path, desired_name: str) -> str | None:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        url = f"{self.endpoint}/{quote(desired_name)}"
        data = await asyncio.to_thread(local_path.read_bytes)

        try:
            if self._client is not None:
                response = await self._client.put(
                    url, content=data, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.put(
                        url, content=data, headers=headers, timeout=self.timeout
                    )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                raise StorageUnavailableError(
                    f"{self.id}: credentials rejected by {self.endpoint}"
                ) from e
            raise StorageError(f"{self.id}: upload returned HTTP {status}") from e
        except httpx.HTTPError as e:
            raise StorageError(f"{self.id}: upload failed: {e}") from e

        return f"{self.public_base_url}/{quote(desired_name)}"


StorageFactory = Callable[..., StorageProvider]


class StorageRegistry:
    """Maps a storage type id to the factory that builds it."""

    def __init__(self) -> None:
        self._factories: dict[str, StorageFactory] = {}

    def register(self, type_id: str, factory: StorageFactory) -> None:
        if type_id in self._factories:
            raise ValueError(f"Storage type already registered: {type_id}")
        self._factories[type_id] = factory

    def create(self, type_id: str, **options: Any) -> StorageProvider:
        try:
            factory = self._factories[type_id]
        except KeyError:
            raise ValueError(
                f"Unknown storage type: {type_id} (available: {', '.join(self.types())})"
            ) from None
        return factory(**options)

    def types(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._factories


def default_registry() -> StorageRegistry:
    """Registry holding every built-in backend."""
    registry = StorageRegistry()
    for type_id, factory in (
        ("local", LocalStorage),
        ("http-put", HttpPutStorage),
    ):
        registry.register(type_id, factory)
    return registry


def build_storages(
    entries: Iterable[StorageEntry],
    registry: StorageRegistry | None = None,
) -> list[StorageProvider]:
    """Instantiate every enabled storage entry.

    Entries that fail to build are logged and skipped.
    """
    registry = registry or default_registry()
    storages: list[StorageProvider] = []
    for entry in entries:
        if not entry.enabled:
            continue
        try:
            storages.append(registry.create(entry.type, id=entry.id, **entry.resolved_options()))
        except (TypeError, ValueError) as e:
            logger.error(f"Storage '{entry.id}' ({entry.type}) not available: {e}")
    return storages


def select_storage(
    storages: Sequence[StorageProvider],
    storage_id: str | None = None,
) -> StorageProvider | None:
    """Pick the requested backend, falling back to the first one configured."""
    if not storages:
        return None
    if storage_id is None:
        return storages[0]
    for storage in storages:
        if storage.id == storage_id:
            return storage
    logger.warning(
        f"Specified storage '{storage_id}' not found, falling back to '{storages[0].id}'"
    )
    return storages[0]
