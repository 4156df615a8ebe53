"""MIME type utilities for asset naming.

This module provides helper functions for MIME type operations,
using the centralized mappings defined in constants.py.
"""

from __future__ import annotations

import mimetypes
import posixpath
from urllib.parse import urlparse

from mediaport.constants import (
    GENERIC_MIME_TYPES,
    KNOWN_URL_EXTENSIONS,
    MIME_TO_EXTENSION,
)


def get_extension_from_mime(mime_type: str | None, default: str = "") -> str:
    """Get file extension from MIME type.

    Args:
        mime_type: MIME type string, e.g. "image/jpeg"
        default: Returned when the MIME type is missing or not recognized

    Returns:
        File extension with leading dot, e.g. ".jpg"

    Examples:
        >>> get_extension_from_mime("image/jpeg")
        '.jpg'
        >>> get_extension_from_mime("video/mp4; codecs=avc1")
        '.mp4'
        >>> get_extension_from_mime("application/octet-stream")
        ''
    """
    if not mime_type:
        return default
    # Handle content-type with parameters (e.g. "image/jpeg; charset=utf-8")
    clean_mime = mime_type.lower().split(";")[0].strip()
    if clean_mime in GENERIC_MIME_TYPES:
        return default
    if clean_mime in MIME_TO_EXTENSION:
        return MIME_TO_EXTENSION[clean_mime]
    return mimetypes.guess_extension(clean_mime) or default


def get_extension_from_url(url: str) -> str | None:
    """Extract a media extension from the URL path.

    Examples:
        >>> get_extension_from_url("https://example.com/a/b.PNG?x=1")
        '.png'
        >>> get_extension_from_url("https://example.com/a/b") is None
        True
    """
    path = urlparse(url).path
    ext = posixpath.splitext(path)[1].lower()
    if ext in KNOWN_URL_EXTENSIONS:
        return ext
    return None
