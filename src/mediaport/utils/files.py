"""File helpers: atomic text writes and async byte writes."""

from __future__ import annotations

import asyncio
import os
import sys
import tempfile
from pathlib import Path

import aiofiles
import aiofiles.os

# Windows-specific retry settings for file operations
_WINDOWS_RETRY_COUNT = 5
_WINDOWS_RETRY_DELAY = 0.05  # 50ms


async def _replace_with_retry_async(src: str, dst: Path) -> None:
    """Replace ``dst`` with ``src``, retrying on Windows file locking.

    On Windows, os.replace() can fail with PermissionError when the target
    file is briefly locked by another process (antivirus, indexer, editor).
    """
    if sys.platform != "win32":
        await aiofiles.os.replace(src, dst)
        return

    last_error: OSError | None = None
    for attempt in range(_WINDOWS_RETRY_COUNT):
        try:
            await aiofiles.os.replace(src, dst)
            return
        except PermissionError as e:
            last_error = e
            if attempt < _WINDOWS_RETRY_COUNT - 1:
                await asyncio.sleep(_WINDOWS_RETRY_DELAY * (attempt + 1))

    if last_error:
        raise last_error


async def atomic_write_text_async(
    path: Path,
    content: str,
    encoding: str = "utf-8",
) -> None:
    """Write text to file atomically using temp file + rename.

    A crash halfway through never leaves a truncated document behind.

    Args:
        path: Target file path
        content: Text content to write
        encoding: Text encoding (default: utf-8)
    """
    path = Path(path)
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    # Temp file in the same directory keeps the rename on one filesystem
    fd, tmp_path = tempfile.mkstemp(
        suffix=".tmp",
        prefix=f".{path.name}.",
        dir=parent,
    )
    try:
        os.close(fd)
        # newline="" keeps the document's own line endings
        async with aiofiles.open(tmp_path, "w", encoding=encoding, newline="") as f:
            await f.write(content)
        await _replace_with_retry_async(tmp_path, path)
    except Exception:
        try:
            await aiofiles.os.remove(tmp_path)
        except OSError:
            pass
        raise


async def write_bytes_async(path: Path, data: bytes) -> None:
    """Write bytes to file asynchronously.

    Args:
        path: Target file path
        data: Bytes to write
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    async with aiofiles.open(path, "wb") as f:
        await f.write(data)


def format_size(num_bytes: int, unit: str = "KB") -> str:
    """Format a byte count as KB or MB with the precision used in logs.

    Examples:
        >>> format_size(2048)
        '2.0 KB'
        >>> format_size(3 * 1024 * 1024, unit="MB")
        '3.00 MB'
    """
    if unit == "MB":
        return f"{num_bytes / (1024 * 1024):.2f} MB"
    return f"{num_bytes / 1024:.1f} KB"

