"""Tests for the mime and file helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from mediaport.utils import (
    atomic_write_text_async,
    format_size,
    get_extension_from_mime,
    get_extension_from_url,
    write_bytes_async,
)


class TestMime:
    """Tests for MIME and URL extension lookups."""

    @pytest.mark.parametrize(
        ("mime", "expected"),
        [
            ("image/jpeg", ".jpg"),
            ("IMAGE/PNG", ".png"),
            ("image/avif", ".avif"),
            ("video/mp4; codecs=avc1", ".mp4"),
            ("video/quicktime", ".mov"),
            ("application/octet-stream", ""),
            ("binary/octet-stream", ""),
            ("", ""),
            (None, ""),
        ],
    )
    def test_extension_from_mime(self, mime, expected) -> None:
        assert get_extension_from_mime(mime) == expected

    def test_default(self) -> None:
        assert get_extension_from_mime(None, ".bin") == ".bin"
        assert get_extension_from_mime("application/x-unknown-thing", ".bin") == ".bin"

    def test_extension_from_url(self) -> None:
        assert get_extension_from_url("https://a.example.com/x/y.JPEG?w=100") == ".jpeg"
        assert get_extension_from_url("https://a.example.com/clip.webm#t=3") == ".webm"
        assert get_extension_from_url("https://a.example.com/page.html") is None
        assert get_extension_from_url("https://a.example.com/render") is None


class TestFiles:
    """Tests for the async file helpers."""

    @pytest.mark.asyncio
    async def test_atomic_write_preserves_line_endings(self, tmp_path: Path) -> None:
        target = tmp_path / "doc.md"
        target.write_text("old", encoding="utf-8")

        await atomic_write_text_async(target, "line one\r\nline two\n")

        assert target.read_bytes() == b"line one\r\nline two\n"
        assert [p.name for p in tmp_path.iterdir()] == ["doc.md"]

    @pytest.mark.asyncio
    async def test_atomic_write_utf8(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "doc.md"

        await atomic_write_text_async(target, "图片 ![x](a)")

        assert target.read_text(encoding="utf-8") == "图片 ![x](a)"

    @pytest.mark.asyncio
    async def test_write_bytes(self, tmp_path: Path) -> None:
        target = tmp_path / "ws" / "a.bin"

        await write_bytes_async(target, b"\x00\x01")

        assert target.read_bytes() == b"\x00\x01"

    def test_format_size(self) -> None:
        assert format_size(2048) == "2.0 KB"
        assert format_size(3 * 1024 * 1024, unit="MB") == "3.00 MB"
