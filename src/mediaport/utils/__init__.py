"""mediaport utilities."""

from mediaport.utils.files import (
    atomic_write_text_async,
    format_size,
    write_bytes_async,
)
from mediaport.utils.mime import get_extension_from_mime, get_extension_from_url

__all__ = [
    # Files
    "atomic_write_text_async",
    "format_size",
    "write_bytes_async",
    # MIME
    "get_extension_from_mime",
    "get_extension_from_url",
]
