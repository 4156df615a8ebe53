"""Logging configuration for mediaport.

Key features:
- Unified loguru-based logging with consistent formatting
- Intercepts third-party library logs (httpx, PIL, asyncio)
- Optional rotating log file next to the console output
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

# Third-party loggers to intercept and route to loguru
INTERCEPTED_LOGGERS = [
    # HTTP clients
    "httpx",
    "httpcore",
    # Imaging
    "PIL",
    "PIL.Image",
    # Async/concurrent
    "asyncio",
    "concurrent.futures",
]


class InterceptHandler(logging.Handler):
    """Intercept standard logging and forward to loguru.

    Uses the record's built-in location info instead of frame tracing.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.bind(
            name=record.name,
            module=record.module,
            function=record.funcName,
            line=record.lineno,
        ).opt(exception=record.exc_info).log(level, record.getMessage())


def _console_filter(verbose: bool) -> Any:
    """Console shows INFO+ normally and DEBUG too in verbose mode."""

    def _filter(record: Any) -> bool:
        if record["level"].name == "DEBUG":
            return verbose
        return True

    return _filter


def _setup_log_interception() -> None:
    """Route intercepted stdlib loggers to loguru, WARNING+ only."""
    intercept_handler = InterceptHandler()

    for logger_name in INTERCEPTED_LOGGERS:
        stdlib_logger = logging.getLogger(logger_name)
        stdlib_logger.handlers.clear()
        stdlib_logger.addHandler(intercept_handler)
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.WARNING)


def setup_logging(
    verbose: bool = False,
    log_dir: str | None = None,
    log_level: str = "DEBUG",
    rotation: str = "10 MB",
    retention: str = "7 days",
    quiet: bool = False,
) -> tuple[int | None, Path | None]:
    """Configure logging.

    Args:
        verbose: Show DEBUG messages on the console.
        log_dir: Directory for log files. Supports ~ expansion.
                 Can be overridden by MEDIAPORT_LOG_DIR env var.
        log_level: Log level for file output.
        rotation: Log file rotation size.
        retention: Log file retention period.
        quiet: Disable console logging entirely (file logging still applies).

    Returns:
        Tuple of (console_handler_id, log_file_path). The log file path is
        None when file logging is disabled.
    """
    logger.remove()

    console_handler_id: int | None = None
    if not quiet:
        console_handler_id = logger.add(
            sys.stderr,
            level="DEBUG",
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
            filter=_console_filter(verbose),
        )

    env_log_dir = os.environ.get("MEDIAPORT_LOG_DIR")
    if env_log_dir:
        log_dir = env_log_dir

    log_file_path: Path | None = None
    if log_dir:
        log_path = Path(log_dir).expanduser()
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        log_file_path = log_path / f"mediaport_{timestamp}.log"
        logger.add(
            log_file_path,
            level=log_level,
            rotation=rotation,
            retention=retention,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <5} | {module}:{line: <3} | {message}",
        )

    _setup_log_interception()

    return console_handler_id, log_file_path
