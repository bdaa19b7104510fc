"""Combine two clips into one video with a single ffmpeg filter graph.

Both sources are scaled into the target frame preserving aspect ratio,
padded with black and centered, resampled to a common frame rate, and their
audio is normalized to one sample format, rate and channel layout before the
two segments are concatenated and encoded once.

The destination either appears complete or not at all: ffmpeg writes into a
hidden working directory next to the destination and the finished file is
renamed into place.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from hookmix.config import Settings, get_settings
from hookmix.exceptions import CombineFailure, ProcessFailure
from hookmix.services.process_runner import ProcessRunner
from hookmix.utils.media_info import MediaInfo, probe_media

logger = logging.getLogger(__name__)

WORKDIR_PREFIX = ".combine-"


@dataclass
class CombineConfig:
    """Target format every combination is normalized to."""

    width: int = 1920
    height: int = 1080
    fps: int = 30
    video_codec: str = "libx264"
    preset: str = "fast"
    crf: int = 23
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"
    sample_rate: int = 44100
    channel_layout: str = "stereo"

    @classmethod
    def from_settings(cls, settings: Settings) -> "CombineConfig":
        return cls(
            width=settings.render_output_width,
            height=settings.render_output_height,
            fps=settings.render_fps,
            preset=settings.render_video_preset,
            crf=settings.render_video_crf,
            audio_bitrate=settings.render_audio_bitrate,
            sample_rate=settings.render_audio_sample_rate,
            channel_layout=settings.render_audio_channel_layout,
        )


class MediaCombiner:
    """Service that renders ``source_a`` followed by ``source_b``."""

    def __init__(
        self,
        runner: ProcessRunner | None = None,
        config: CombineConfig | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.runner = runner or ProcessRunner()
        self.config = config or CombineConfig.from_settings(self.settings)

    def _video_filter(self, index: int) -> str:
        c = self.config
        return (
            f"[{index}:v]scale={c.width}:{c.height}:force_original_aspect_ratio=decrease,"
            f"pad={c.width}:{c.height}:(ow-iw)/2:(oh-ih)/2:color=black,"
            f"setsar=1,fps={c.fps}[v{index}]"
        )

    def _audio_filter(self, index: int, info: MediaInfo) -> str:
        c = self.config
        aformat = (
            f"aformat=sample_fmts=fltp:sample_rates={c.sample_rate}"
            f":channel_layouts={c.channel_layout}"
        )
        if info.has_audio:
            return f"[{index}:a]{aformat}[a{index}]"
        # Silent source: generate silence of the same length so concat
        # always sees one audio stream per segment.
        duration = info.duration_s or 0.0
        return (
            f"anullsrc=channel_layout={c.channel_layout}:sample_rate={c.sample_rate},"
            f"atrim=duration={duration:.3f},{aformat}[a{index}]"
        )

    def build_filter_graph(self, info_a: MediaInfo, info_b: MediaInfo) -> str:
        parts = [
            self._video_filter(0),
            self._video_filter(1),
            self._audio_filter(0, info_a),
            self._audio_filter(1, info_b),
            "[v0][a0][v1][a1]concat=n=2:v=1:a=1[outv][outa]",
        ]
        return ";".join(parts)

    def build_command(
        self,
        source_a: Path,
        source_b: Path,
        output_path: Path,
        info_a: MediaInfo,
        info_b: MediaInfo,
    ) -> list[str]:
        c = self.config
        return [
            self.settings.ffmpeg_path,
            "-nostdin",
            "-hide_banner",
            "-loglevel", "error",
            "-fflags", "+genpts",
            "-i", str(source_a),
            "-fflags", "+genpts",
            "-i", str(source_b),
            "-filter_complex", self.build_filter_graph(info_a, info_b),
            "-map", "[outv]",
            "-map", "[outa]",
            "-c:v", c.video_codec,
            "-preset", c.preset,
            "-crf", str(c.crf),
            "-pix_fmt", "yuv420p",
            "-c:a", c.audio_codec,
            "-b:a", c.audio_bitrate,
            "-movflags", "+faststart",
            "-y",
            str(output_path),
        ]

    async def _probe(self, source: Path) -> MediaInfo:
        try:
            info = await probe_media(
                self.runner,
                source,
                ffprobe_path=self.settings.ffprobe_path,
                timeout=self.settings.ffprobe_timeout_s,
            )
        except ProcessFailure as e:
            raise CombineFailure(f"cannot probe {source.name}: {e.exit_reason}", phase="probe") from e
        except RuntimeError as e:
            raise CombineFailure(f"cannot probe {source.name}: {e}", phase="probe") from e

        if not info.has_video:
            raise CombineFailure(f"no video stream in {source.name}", phase="probe")
        if not info.has_audio and not info.duration_ms:
            raise CombineFailure(f"silent source {source.name} has no known duration", phase="probe")
        return info

    async def combine(self, source_a: Path, source_b: Path, destination: Path) -> None:
        """Render ``source_a`` then ``source_b`` into ``destination``.

        Raises:
            CombineFailure: If probing or encoding fails. ``destination`` is
                left untouched in that case.
        """
        info_a = await self._probe(source_a)
        info_b = await self._probe(source_b)

        workdir = await asyncio.to_thread(
            tempfile.mkdtemp, prefix=WORKDIR_PREFIX, dir=destination.parent
        )
        try:
            partial = Path(workdir) / f"combined{destination.suffix or '.mp4'}"
            cmd = self.build_command(source_a, source_b, partial, info_a, info_b)
            try:
                await self.runner.run(cmd, self.settings.ffmpeg_timeout_s)
            except ProcessFailure as e:
                if e.captured_output:
                    logger.error("FFmpeg output for %s:\n%s", destination.name, e.captured_output)
                raise CombineFailure(e.exit_reason, phase="encode") from e

            if not partial.exists() or partial.stat().st_size == 0:
                raise CombineFailure("ffmpeg produced no output", phase="encode")

            await asyncio.to_thread(os.replace, partial, destination)
        finally:
            await asyncio.to_thread(shutil.rmtree, workdir, True)
