"""Command-line interface for mediaport."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from loguru import logger
from pydantic import ValidationError

from mediaport import __version__
from mediaport.config import ConfigManager
from mediaport.logging_config import setup_logging
from mediaport.pipeline import MediaPipeline
from mediaport.storage import build_storages, default_registry, select_storage


def _load_config(config_path: Path | None) -> ConfigManager:
    manager = ConfigManager()
    try:
        manager.load(config_path)
    except (OSError, ValueError, ValidationError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e
    return manager


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "-V", "--version", prog_name="mediaport")
def main() -> None:
    """Move remote images and videos of markdown documents to your own storage."""
    # Load .env file from current directory and parent directories
    load_dotenv()


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to configuration file.",
)
@click.option("--storage", "-s", "storage_id", default=None, help="Storage id to upload to.")
@click.option(
    "--write/--no-write",
    default=False,
    help="Rewrite the file in place instead of printing the result.",
)
@click.option(
    "--convert-images/--no-convert-images",
    default=None,
    help="Enable/disable still-image conversion.",
)
@click.option(
    "--convert-videos/--no-convert-videos",
    default=None,
    help="Enable/disable video transcoding (needs ffmpeg).",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs.")
@click.option("--quiet", "-q", is_flag=True, help="Only log to file, if configured.")
def process(
    path: Path,
    config_path: Path | None,
    storage_id: str | None,
    write: bool,
    convert_images: bool | None,
    convert_videos: bool | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Externalize the media referenced by PATH."""
    manager = _load_config(config_path)
    cfg = manager.config
    setup_logging(
        verbose=verbose,
        log_dir=cfg.log.dir,
        log_level=cfg.log.level,
        rotation=cfg.log.rotation,
        retention=cfg.log.retention,
        quiet=quiet,
    )

    if convert_images is not None:
        manager.set("process.convert_images", convert_images)
    if convert_videos is not None:
        manager.set("process.convert_videos", convert_videos)

    storage = select_storage(build_storages(cfg.storages), storage_id)
    if storage is None:
        raise click.ClickException("No storage configured; add one under 'storages'.")

    content = path.read_text(encoding="utf-8")
    pipeline = MediaPipeline(cfg, storage)
    result = asyncio.run(pipeline.run(content, path if write else None))

    if result.error:
        logger.error(f"Document left unchanged: {result.error}")
        sys.exit(1)
    logger.info(
        f"Done: {len(result.replaced)} uploaded, {len(result.deleted)} removed, "
        f"{len(result.outcomes) - len(result.replaced) - len(result.deleted)} unchanged"
    )
    if not write:
        click.echo(result.content, nl=False)


@main.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to configuration file.",
)
def storages(config_path: Path | None) -> None:
    """List storage types and configured backends."""
    manager = _load_config(config_path)
    registry = default_registry()
    click.echo("Storage types:")
    for type_id in registry.types():
        click.echo(f"  {type_id}")
    click.echo("Configured:")
    if not manager.config.storages:
        click.echo("  (none)")
    for entry in manager.config.storages:
        state = "enabled" if entry.enabled else "disabled"
        known = "" if entry.type in registry else " [unknown type]"
        click.echo(f"  {entry.id} ({entry.type}, {state}){known}")


if __name__ == "__main__":
    main()
