"""Configuration management for mediaport."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from mediaport.constants import (
    CONFIG_FILENAME,
    DEFAULT_AVIF_EFFORT,
    DEFAULT_AVIF_QUALITY,
    DEFAULT_DELETE_VIDEO_DOMAINS,
    DEFAULT_DOMAIN_PREFIX_MAP,
    DEFAULT_FETCH_CONCURRENCY,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_HEAD_TIMEOUT,
    DEFAULT_IGNORE_DOMAINS,
    DEFAULT_IMAGE_FORMAT,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_RETENTION,
    DEFAULT_LOG_ROTATION,
    DEFAULT_MAX_VIDEO_SIZE_MB,
    DEFAULT_TRANSCODE_CONCURRENCY,
    DEFAULT_TYPEID_PREFIX,
    DEFAULT_USER_AGENT,
    DEFAULT_VIDEO_AUDIO_BITRATE,
    DEFAULT_VIDEO_CODEC,
    DEFAULT_VIDEO_CRF,
    DEFAULT_VIDEO_PRESET,
)


class EnvVarNotFoundError(ValueError):
    """Raised when an environment variable referenced by env: syntax is not found."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name
        super().__init__(f"Environment variable not found: {var_name}")


def resolve_env_value(value: Any, strict: bool = True) -> Any:
    """Resolve env:VAR_NAME syntax to actual environment variable value.

    Args:
        value: The value to resolve. If it is a string starting with "env:",
               the rest is looked up in the environment.
        strict: If True, raises EnvVarNotFoundError when variable not found.
                If False, returns None when variable not found.

    Returns:
        The resolved value, or None if env var not found and strict=False.
        Non-string values are returned untouched.

    Raises:
        EnvVarNotFoundError: If strict=True and environment variable not found.
    """
    if isinstance(value, str) and value.startswith("env:"):
        env_var = value[4:]
        env_value = os.environ.get(env_var)
        if env_value is None:
            if strict:
                raise EnvVarNotFoundError(env_var)
            return None
        return env_value
    return value


class ProcessConfig(BaseModel):
    """Media processing configuration.

    Accepts both the snake_case field names and the uppercase keys used by
    the publishing application's IMAGE_PROCESS_CONFIG settings block.
    """

    model_config = ConfigDict(populate_by_name=True)

    convert_images: bool = Field(default=True, alias="CONVERT_IMAGES")
    image_format: Literal["avif", "webp"] = Field(
        default=DEFAULT_IMAGE_FORMAT, alias="IMAGE_FORMAT"
    )
    avif_quality: int = Field(
        default=DEFAULT_AVIF_QUALITY, ge=1, le=100, alias="AVIF_QUALITY"
    )
    avif_effort: int = Field(default=DEFAULT_AVIF_EFFORT, ge=0, le=9, alias="AVIF_EFFORT")
    convert_videos: bool = Field(default=False, alias="CONVERT_VIDEOS")
    video_codec: str = Field(default=DEFAULT_VIDEO_CODEC, alias="VIDEO_CODEC")
    video_preset: str = Field(default=DEFAULT_VIDEO_PRESET, alias="VIDEO_PRESET")
    video_crf: int = Field(default=DEFAULT_VIDEO_CRF, ge=0, le=63, alias="VIDEO_CRF")
    video_audio_bitrate: str = Field(
        default=DEFAULT_VIDEO_AUDIO_BITRATE, alias="VIDEO_AUDIO_BITRATE"
    )
    max_video_size_mb: float = Field(
        default=DEFAULT_MAX_VIDEO_SIZE_MB, gt=0, alias="MAX_VIDEO_SIZE_MB"
    )
    typeid_prefix: str = Field(default=DEFAULT_TYPEID_PREFIX, alias="TYPEID_PREFIX")
    transcode_concurrency: int = Field(
        default=DEFAULT_TRANSCODE_CONCURRENCY, ge=1, alias="TRANSCODE_CONCURRENCY"
    )

    @property
    def max_video_bytes(self) -> int:
        """Video size cap in bytes."""
        return int(self.max_video_size_mb * 1024 * 1024)


class FetchConfig(BaseModel):
    """HTTP fetch configuration."""

    timeout: float = Field(default=DEFAULT_FETCH_TIMEOUT, gt=0)
    head_timeout: float = Field(default=DEFAULT_HEAD_TIMEOUT, gt=0)
    user_agent: str = DEFAULT_USER_AGENT
    concurrency: int = Field(default=DEFAULT_FETCH_CONCURRENCY, ge=1)


class DomainPolicyConfig(BaseModel):
    """Per-host handling tables."""

    prefix_map: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_DOMAIN_PREFIX_MAP)
    )
    delete_video_domains: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DELETE_VIDEO_DOMAINS)
    )
    ignore_domains: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE_DOMAINS)
    )


class LogConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = DEFAULT_LOG_LEVEL
    dir: str | None = DEFAULT_LOG_DIR
    rotation: str = DEFAULT_LOG_ROTATION
    retention: str = DEFAULT_LOG_RETENTION


class StorageEntry(BaseModel):
    """A configured storage backend instance."""

    id: str
    type: str
    enabled: bool = True
    options: dict[str, Any] = Field(default_factory=dict)

    def resolved_options(self, strict: bool = True) -> dict[str, Any]:
        """Get options with env: syntax resolved."""
        return {
            key: resolve_env_value(value, strict=strict)
            for key, value in self.options.items()
        }


class MediaportConfig(BaseModel):
    """Main configuration model."""

    model_config = ConfigDict(populate_by_name=True)

    process: ProcessConfig = Field(
        default_factory=ProcessConfig, alias="IMAGE_PROCESS_CONFIG"
    )
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    domains: DomainPolicyConfig = Field(default_factory=DomainPolicyConfig)
    log: LogConfig = Field(default_factory=LogConfig)
    storages: list[StorageEntry] = Field(default_factory=list)


class ConfigManager:
    """Configuration manager for loading and editing configs."""

    CONFIG_FILENAME = CONFIG_FILENAME
    DEFAULT_USER_CONFIG_DIR = Path.home() / ".mediaport"

    def __init__(self) -> None:
        self._config: MediaportConfig | None = None
        self._config_path: Path | None = None

    @property
    def config(self) -> MediaportConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    @property
    def config_path(self) -> Path | None:
        """Get the path of the loaded configuration file."""
        return self._config_path

    def load(
        self,
        config_path: Path | str | None = None,
        env_override: bool = True,
    ) -> MediaportConfig:
        """
        Load configuration from file with fallback chain.

        Priority (highest to lowest):
        1. Explicit config_path parameter
        2. MEDIAPORT_CONFIG environment variable
        3. ./mediaport.json (current directory)
        4. ~/.mediaport/config.json (user directory)
        5. Default values
        """
        config_data: dict[str, Any] = {}

        resolved_path = self._resolve_config_path(config_path, env_override)

        if resolved_path and resolved_path.exists():
            config_data = self._load_json(resolved_path)
            self._config_path = resolved_path

        self._config = MediaportConfig.model_validate(config_data)
        return self._config

    def _resolve_config_path(
        self,
        config_path: Path | str | None,
        env_override: bool,
    ) -> Path | None:
        """Resolve configuration file path based on priority."""
        if config_path:
            return Path(config_path)

        if env_override:
            env_path = os.environ.get("MEDIAPORT_CONFIG")
            if env_path:
                return Path(env_path)

        cwd_config = Path.cwd() / self.CONFIG_FILENAME
        if cwd_config.exists():
            return cwd_config

        user_config = self.DEFAULT_USER_CONFIG_DIR / "config.json"
        if user_config.exists():
            return user_config

        return None

    def _load_json(self, path: Path) -> dict[str, Any]:
        """Load JSON configuration file."""
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value by dot-separated key path.

        Example: config_manager.set("process.convert_videos", True)
        """
        parts = key.split(".")
        if len(parts) == 1:
            setattr(self.config, key, value)
            return

        parent: Any = self.config
        for part in parts[:-1]:
            if isinstance(parent, BaseModel):
                parent = getattr(parent, part)
            elif isinstance(parent, dict):
                parent = parent[part]

        final_key = parts[-1]
        if isinstance(parent, BaseModel):
            setattr(parent, final_key, value)
        elif isinstance(parent, dict):
            parent[final_key] = value
