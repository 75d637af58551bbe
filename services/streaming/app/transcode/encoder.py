"""
ffmpeg-backed variant transcoder.

Each call probes the input, then renders one HLS rendition
({work_dir}/{label}/playlist.m3u8 + segment_NNN.ts). Progress is parsed from
``-progress pipe:1`` and handed to an optional callback; it never affects
the result. ffmpeg's stderr goes to a log file next to the rendition so the
pipe cannot fill up and stall the encoder.
"""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from app.exceptions import EncoderError
from app.transcode.constants import (
    AUDIO_BITRATE,
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE,
    SEGMENT_PATTERN,
    VARIANT_PLAYLIST_NAME,
    VariantSpec,
)
from app.transcode.schemas import VariantArtifacts

if TYPE_CHECKING:
    from app.config import Settings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[VariantSpec, float], None]

_LOG_TAIL_CHARS = 2000


class FfmpegEncoder:
    def __init__(
        self,
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
        segment_duration: int = 4,
        gop_size: int = 48,
    ) -> None:
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.segment_duration = segment_duration
        self.gop_size = gop_size

    @classmethod
    def from_settings(cls, settings: Settings) -> FfmpegEncoder:
        return cls(
            ffmpeg=settings.ffmpeg_binary,
            ffprobe=settings.ffprobe_binary,
            segment_duration=settings.hls_segment_duration,
            gop_size=settings.hls_gop_size,
        )

    def build_command(self, input_path: Path, spec: VariantSpec, out_dir: Path) -> list[str]:
        gop = str(self.gop_size)
        return [
            self.ffmpeg,
            "-hide_banner",
            "-y",
            "-i", str(input_path),
            "-c:v", "libx264",
            "-profile:v", "high",
            "-pix_fmt", "yuv420p",  # 8-bit output even for 10-bit sources
            "-preset", "medium",
            "-crf", "23",
            "-maxrate", spec.ffmpeg_bitrate,
            "-bufsize", f"{spec.bitrate_kbps * 2}k",
            "-sc_threshold", "0",
            "-g", gop,
            "-keyint_min", gop,
            "-s", spec.resolution,
            "-c:a", "aac",
            "-ac", str(AUDIO_CHANNELS),
            "-ar", str(AUDIO_SAMPLE_RATE),
            "-b:a", AUDIO_BITRATE,
            "-max_muxing_queue_size", "1024",
            "-f", "hls",
            "-hls_time", str(self.segment_duration),
            "-hls_playlist_type", "vod",
            "-hls_segment_filename", str(out_dir / SEGMENT_PATTERN),
            "-progress", "pipe:1",
            "-nostats",
            str(out_dir / VARIANT_PLAYLIST_NAME),
        ]

    async def probe_duration(self, input_path: Path, spec: VariantSpec) -> float:
        """Return the input duration in seconds (0.0 if unknown)."""
        if not input_path.is_file():
            raise EncoderError(spec.name, f"Input file does not exist: {input_path}")

        process = await asyncio.create_subprocess_exec(
            self.ffprobe,
            "-v", "error",
            "-show_entries", "format=duration,format_name,size,bit_rate",
            "-of", "json",
            str(input_path),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            logger.info("[%s] Duration lookup cancelled", spec.name)
            raise
        if process.returncode != 0:
            raise EncoderError(
                spec.name,
                f"Failed to probe input file: {stderr.decode('utf-8', errors='ignore').strip()}",
            )

        try:
            info = json.loads(stdout.decode("utf-8", errors="ignore") or "{}")
        except json.JSONDecodeError as exc:
            raise EncoderError(spec.name, f"ffprobe returned invalid JSON: {exc}") from exc
        fmt = info.get("format") if isinstance(info, dict) else None
        if not isinstance(fmt, dict):
            fmt = {}
        logger.info(
            "[%s] Input: format=%s duration=%s size=%s bitrate=%s",
            spec.name, fmt.get("format_name"), fmt.get("duration"),
            fmt.get("size"), fmt.get("bit_rate"),
        )
        try:
            return float(fmt.get("duration") or 0.0)
        except (TypeError, ValueError):
            return 0.0

    async def invoke(
        self,
        input_path: Path,
        spec: VariantSpec,
        work_dir: Path,
        on_progress: ProgressCallback | None = None,
    ) -> VariantArtifacts:
        duration = await self.probe_duration(input_path, spec)

        out_dir = work_dir / spec.name
        out_dir.mkdir(parents=True, exist_ok=True)
        log_path = work_dir / f"{spec.name}.ffmpeg.log"
        cmd = self.build_command(input_path, spec, out_dir)
        logger.info("[%s] FFmpeg command: %s", spec.name, " ".join(cmd))

        loop = asyncio.get_running_loop()
        started = loop.time()
        with log_path.open("wb") as log_file:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=log_file,
            )
            try:
                await self._read_progress(process, spec, duration, on_progress)
                returncode = await process.wait()
            except asyncio.CancelledError:
                if process.returncode is None:
                    process.kill()
                    await process.wait()
                logger.info("[%s] Transcoding cancelled", spec.name)
                raise

        if returncode != 0:
            tail = log_path.read_text(encoding="utf-8", errors="ignore")[-_LOG_TAIL_CHARS:]
            logger.error("[%s] FFmpeg stderr: %s", spec.name, tail)
            raise EncoderError(spec.name, f"Transcoding failed with exit code {returncode}\nStderr: {tail}")

        playlist = out_dir / VARIANT_PLAYLIST_NAME
        if not playlist.is_file():
            raise EncoderError(spec.name, "Transcoding produced no playlist")

        logger.info(
            "[%s] Transcoding completed in %.2fs", spec.name, loop.time() - started,
        )
        return VariantArtifacts(
            spec=spec,
            playlist=playlist,
            segments=sorted(out_dir.glob("*.ts")),
        )

    async def _read_progress(
        self,
        process: asyncio.subprocess.Process,
        spec: VariantSpec,
        duration: float,
        on_progress: ProgressCallback | None,
    ) -> None:
        assert process.stdout is not None
        while True:
            line = await process.stdout.readline()
            if not line:
                break
            key, _, value = line.decode("utf-8", errors="ignore").strip().partition("=")
            if key not in ("out_time_us", "out_time_ms") or duration <= 0:
                continue
            try:
                # ffmpeg reports microseconds under both names.
                percent = min(100.0, int(value) / (duration * 1_000_000) * 100)
            except ValueError:
                continue
            logger.debug("[%s] Processing: %.1f%% done", spec.name, percent)
            if on_progress is not None:
                try:
                    on_progress(spec, percent)
                except Exception:
                    logger.warning("[%s] Progress callback raised", spec.name, exc_info=True)
