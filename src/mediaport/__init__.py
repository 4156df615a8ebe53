"""mediaport - externalize remote media referenced by markdown/HTML documents."""

from __future__ import annotations

__version__ = "0.3.0"

from mediaport.config import MediaportConfig, ProcessConfig
from mediaport.pipeline import MediaPipeline, PipelineResult, process_markdown
from mediaport.storage import (
    StorageError,
    StorageProvider,
    StorageUnavailableError,
)

__all__ = [
    "__version__",
    "MediaPipeline",
    "MediaportConfig",
    "PipelineResult",
    "ProcessConfig",
    "StorageError",
    "StorageProvider",
    "StorageUnavailableError",
    "process_markdown",
]
