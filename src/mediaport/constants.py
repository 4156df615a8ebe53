"""Centralized constants for mediaport.

This module contains the hardcoded defaults used throughout the codebase.
Grouping them here makes it easier to:
- Find and modify default values
- Understand system limits at a glance
- Keep the config models and the pipeline in sync
"""

from __future__ import annotations

# =============================================================================
# Fetching
# =============================================================================

DEFAULT_FETCH_TIMEOUT = 20.0  # seconds, full GET
DEFAULT_HEAD_TIMEOUT = 5.0  # seconds, video size preflight
DEFAULT_FETCH_CONCURRENCY = 5  # concurrent downloads per document
DEFAULT_USER_AGENT = "Mozilla/5.0"
DEFAULT_DOWNLOAD_CHUNK_SIZE = 64 * 1024

# Status codes that mean the asset is gone for good
GONE_STATUS_CODES = frozenset({403, 404, 410})

# Fallback extension when neither content-type nor URL tell us anything
DEFAULT_ASSET_EXTENSION = ".dat"

# =============================================================================
# Transcoding
# =============================================================================

DEFAULT_IMAGE_FORMAT = "avif"
DEFAULT_AVIF_QUALITY = 50  # 1-100
DEFAULT_AVIF_EFFORT = 4  # 0 (fastest) - 9 (smallest)

DEFAULT_VIDEO_CODEC = "libx264"
DEFAULT_VIDEO_PRESET = "medium"
DEFAULT_VIDEO_CRF = 28
DEFAULT_VIDEO_AUDIO_BITRATE = "128k"
DEFAULT_MAX_VIDEO_SIZE_MB = 50
DEFAULT_TRANSCODE_CONCURRENCY = 1  # ffmpeg processes at once

CONVERTED_SUFFIX = "-conv"

# =============================================================================
# Naming
# =============================================================================

DEFAULT_TYPEID_PREFIX = "asset"

# =============================================================================
# Domain policy
# =============================================================================

DEFAULT_DOMAIN_PREFIX_MAP: dict[str, str] = {
    "tvax1.sinaimg.cn": "https://webp.follow.is/?url=",
    "tvax2.sinaimg.cn": "https://webp.follow.is/?url=",
}

DEFAULT_DELETE_VIDEO_DOMAINS: tuple[str, ...] = (
    "upload.chinaz.com",
    "videocdnv2.ruguoapp.com",
)

DEFAULT_IGNORE_DOMAINS: tuple[str, ...] = (
    "s1.imagehub.cc",
    "source.hubtoday.app",
    "cdnv2.ruguoapp.com",
)

# =============================================================================
# Logging
# =============================================================================

DEFAULT_LOG_LEVEL = "DEBUG"
DEFAULT_LOG_DIR = None  # file logging disabled unless configured
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"

# =============================================================================
# Paths and Filenames
# =============================================================================

CONFIG_FILENAME = "mediaport.json"
WORKSPACE_PREFIX = "tmp-assets-"

# =============================================================================
# MIME Type Mappings
# =============================================================================

# MIME type to extension mapping (for decoding content-type headers)
MIME_TO_EXTENSION: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/avif": ".avif",
    "image/svg+xml": ".svg",
    "image/bmp": ".bmp",
    "image/x-icon": ".ico",
    "image/vnd.microsoft.icon": ".ico",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
    "video/x-matroska": ".mkv",
    "video/ogg": ".ogv",
}

# Content types that say nothing about the payload
GENERIC_MIME_TYPES = frozenset({"application/octet-stream", "binary/octet-stream"})

# Extensions recognised when falling back to the URL path
KNOWN_URL_EXTENSIONS: tuple[str, ...] = (
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".avif",
    ".svg",
    ".bmp",
    ".ico",
    ".mp4",
    ".webm",
    ".mov",
    ".mkv",
    ".ogv",
)
