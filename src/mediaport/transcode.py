"""Convert fetched assets to storage-efficient formats.

Images go through Pillow (AVIF by default, WebP as an alternative), videos
through an external ffmpeg process. Every failure falls back to the original
file: a conversion problem never costs us the asset.
"""

from __future__ import annotations

import asyncio
import shutil
import subprocess
from pathlib import Path
from typing import Any

from loguru import logger
from PIL import Image

from mediaport.config import ProcessConfig
from mediaport.constants import CONVERTED_SUFFIX
from mediaport.patterns import MediaKind
from mediaport.utils.files import format_size


def find_ffmpeg() -> str | None:
    """Locate the ffmpeg executable on PATH."""
    return shutil.which("ffmpeg")


def is_animated(image: Image.Image) -> bool:
    """True for multi-frame images (animated GIF/WebP/PNG)."""
    return getattr(image, "n_frames", 1) > 1


def _encoder_options(image_format: str, quality: int, effort: int) -> dict[str, Any]:
    """Pillow save() options for the target format.

    Effort follows the 0 (fastest) - 9 (smallest) scale; AVIF's ``speed`` runs
    the other way (0 slowest - 10 fastest) and WebP's ``method`` tops out at 6.
    """
    if image_format == "avif":
        return {"quality": quality, "speed": max(0, min(10, 10 - effort))}
    return {"quality": quality, "method": min(6, effort)}


def convert_image(
    source: Path,
    output_dir: Path,
    image_format: str,
    quality: int,
    effort: int,
) -> Path:
    """Encode ``source`` into ``output_dir`` as ``<stem>-conv.<format>``.

    Returns the original path for animated images and on any encoder error.
    """
    output_path = output_dir / f"{source.stem}{CONVERTED_SUFFIX}.{image_format}"
    try:
        with Image.open(source) as img:
            if is_animated(img):
                logger.info(f"Animated image detected, uploading original: {source.name}")
                return source

            img.load()
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA" if img.has_transparency_data else "RGB")

            img.save(
                output_path,
                format=image_format.upper(),
                **_encoder_options(image_format, quality, effort),
            )
    except Exception as e:
        logger.warning(f"Image conversion to {image_format.upper()} failed: {e}. Using original.")
        output_path.unlink(missing_ok=True)
        return source

    logger.info(
        f"Converted image to {image_format.upper()} (quality: {quality}). "
        f"Size: {format_size(source.stat().st_size)} -> "
        f"{format_size(output_path.stat().st_size)}"
    )
    return output_path


def build_ffmpeg_command(
    ffmpeg: str,
    source: Path,
    output_path: Path,
    config: ProcessConfig,
) -> list[str]:
    """ffmpeg argument list for a web-friendly MP4 with fast start."""
    return [
        ffmpeg,
        "-y",
        "-i",
        str(source),
        "-c:v",
        config.video_codec,
        "-preset",
        config.video_preset,
        "-crf",
        str(config.video_crf),
        "-c:a",
        "aac",
        "-b:a",
        config.video_audio_bitrate,
        "-movflags",
        "+faststart",
        str(output_path),
    ]


class Transcoder:
    """Per-invocation transcoder with a cap on concurrent ffmpeg processes."""

    def __init__(
        self,
        config: ProcessConfig | None = None,
        ffmpeg_path: str | None = None,
    ) -> None:
        self.config = config or ProcessConfig()
        self.ffmpeg_path = ffmpeg_path
        self._video_semaphore = asyncio.Semaphore(self.config.transcode_concurrency)

    async def transcode(self, source: Path, media_kind: MediaKind, workspace: Path) -> Path:
        """Convert ``source`` if enabled for its kind; never raises."""
        if media_kind is MediaKind.IMAGE and self.config.convert_images:
            logger.info(f"Converting image to {self.config.image_format.upper()}...")
            return await asyncio.to_thread(
                convert_image,
                source,
                workspace,
                self.config.image_format,
                self.config.avif_quality,
                self.config.avif_effort,
            )
        if media_kind is MediaKind.VIDEO and self.config.convert_videos:
            return await self.convert_video(source, workspace)
        return source

    async def convert_video(self, source: Path, workspace: Path) -> Path:
        """Transcode a video with ffmpeg; returns the original on failure."""
        ffmpeg = self.ffmpeg_path or find_ffmpeg()
        if not ffmpeg:
            logger.error("ffmpeg not found, uploading original video")
            return source

        output_path = workspace / f"{source.stem}{CONVERTED_SUFFIX}.mp4"
        cmd = build_ffmpeg_command(ffmpeg, source, output_path, self.config)

        async with self._video_semaphore:
            logger.info(f"Transcoding video with ffmpeg: {source.name}")
            try:
                # Bytes, not text: ffmpeg echoes container metadata in any encoding
                proc = await asyncio.to_thread(subprocess.run, cmd, capture_output=True)
            except Exception as e:
                logger.error(f"ffmpeg failed to run: {type(e).__name__}: {e}")
                return source

        if proc.returncode != 0 or not output_path.exists():
            stderr = (proc.stderr or b"").decode("utf-8", errors="replace")
            stderr_tail = stderr.strip().splitlines()[-3:]
            logger.error(
                f"ffmpeg conversion failed (exit {proc.returncode}): {' | '.join(stderr_tail)}"
            )
            return source

        logger.info(
            f"Converted video to MP4 (CRF: {self.config.video_crf}). "
            f"Size: {format_size(source.stat().st_size, 'MB')} -> "
            f"{format_size(output_path.stat().st_size, 'MB')}"
        )
        return output_path
