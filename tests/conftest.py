"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
import pytest

# =============================================================================
# Fake remote host
# =============================================================================


@dataclass
class Route:
    """Canned answer for one URL."""

    status: int = 200
    content: Any = b""
    content_type: str | None = "image/png"
    head_status: int | None = None
    head_length: int | None = None
    exc: Exception | None = None
    extra_headers: dict[str, str] = field(default_factory=dict)


class FakeMediaServer:
    """httpx.MockTransport handler serving canned media responses.

    Unknown URLs answer 404, which the pipeline treats as a gone asset.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Route] = {}
        self.requests: list[tuple[str, str]] = []
        self.last_request: httpx.Request | None = None

    @staticmethod
    def _key(url: str | httpx.URL) -> str:
        return str(httpx.URL(str(url)))

    def add(self, url: str, **kwargs: Any) -> Route:
        route = Route(**kwargs)
        self.routes[self._key(url)] = route
        return route

    def requested(self, method: str = "GET") -> list[str]:
        return [url for m, url in self.requests if m == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, str(request.url)))
        self.last_request = request
        route = self.routes.get(self._key(request.url))
        if route is None:
            return httpx.Response(404)
        if route.exc is not None:
            raise route.exc

        headers = dict(route.extra_headers)
        if route.content_type:
            headers["content-type"] = route.content_type

        if request.method == "HEAD":
            status = route.head_status if route.head_status is not None else route.status
            if route.head_length is not None:
                headers["content-length"] = str(route.head_length)
            return httpx.Response(status, headers=headers)
        return httpx.Response(route.status, headers=headers, content=route.content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def media_server() -> FakeMediaServer:
    """Return an empty fake media host."""
    return FakeMediaServer()


# =============================================================================
# Storage Fixtures
# =============================================================================


class RecordingStorage:
    """In-memory storage backend that records every upload."""

    hosted_domains = ("cdn.example.org",)

    def __init__(
        self,
        id: str = "recording",
        fail_with: Exception | None = None,
        fail_suffix: str = "",
        decline: bool = False,
    ) -> None:
        self.id = id
        self.fail_with = fail_with
        self.fail_suffix = fail_suffix
        self.decline = decline
        self.uploads: list[tuple[Path, str, bytes]] = []

    async def upload(self, local_path: Path, desired_name: str) -> str | None:
        if self.fail_with is not None and desired_name.endswith(self.fail_suffix):
            raise self.fail_with
        if self.decline:
            return None
        self.uploads.append((local_path, desired_name, local_path.read_bytes()))
        return f"https://cdn.example.org/{desired_name}"


@pytest.fixture
def storage_factory():
    """Return the recording storage class for tests that need failures."""
    return RecordingStorage


@pytest.fixture
def storage() -> RecordingStorage:
    """Return a storage backend that accepts everything."""
    return RecordingStorage()


# =============================================================================
# CLI Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Return a CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


# =============================================================================
# Image Test Utilities
# =============================================================================


@pytest.fixture
def create_test_image():
    """Factory fixture for creating test images.

    Usage:
        def test_something(create_test_image):
            png_bytes = create_test_image(100, 100, "red")
    """
    from PIL import Image

    def _create(
        width: int = 32,
        height: int = 32,
        color: str = "red",
        format: str = "PNG",
        mode: str = "RGB",
    ) -> bytes:
        img = Image.new(mode, (width, height), color)
        buffer = io.BytesIO()
        img.save(buffer, format=format)
        return buffer.getvalue()

    return _create


@pytest.fixture
def animated_gif_bytes() -> bytes:
    """Return a two-frame animated GIF."""
    from PIL import Image

    frames = [Image.new("RGB", (16, 16), color) for color in ("red", "blue")]
    buffer = io.BytesIO()
    frames[0].save(
        buffer,
        format="GIF",
        save_all=True,
        append_images=frames[1:],
        duration=100,
        loop=0,
    )
    return buffer.getvalue()
