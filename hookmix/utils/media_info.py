"""Media file information utilities using FFprobe."""

import json
from dataclasses import dataclass
from pathlib import Path

from hookmix.services.process_runner import ProcessRunner


@dataclass
class MediaInfo:
    """Media file information."""

    duration_ms: int | None = None
    width: int | None = None
    height: int | None = None
    has_video: bool = False
    has_audio: bool = False

    @property
    def duration_s(self) -> float | None:
        if self.duration_ms is None:
            return None
        return self.duration_ms / 1000


def build_probe_command(ffprobe_path: str, file_path: Path | str) -> list[str]:
    return [
        ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(file_path),
    ]


def parse_probe_output(raw: str) -> MediaInfo:
    """
    Build MediaInfo from ffprobe JSON output.

    Args:
        raw: stdout of ``ffprobe -print_format json -show_format -show_streams``

    Returns:
        MediaInfo for the file

    Raises:
        RuntimeError: If the output is not valid JSON
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse ffprobe output: {e}")

    info = MediaInfo()
    for stream in data.get("streams", []):
        codec_type = stream.get("codec_type")
        if codec_type == "video" and not info.has_video:
            info.has_video = True
            info.width = stream.get("width")
            info.height = stream.get("height")
            if "duration" in stream:
                try:
                    info.duration_ms = int(float(stream["duration"]) * 1000)
                except (TypeError, ValueError):
                    pass
        elif codec_type == "audio":
            info.has_audio = True

    # Container duration wins over the stream's
    format_info = data.get("format", {})
    if "duration" in format_info:
        try:
            info.duration_ms = int(float(format_info["duration"]) * 1000)
        except (TypeError, ValueError):
            pass

    return info


async def probe_media(
    runner: ProcessRunner,
    file_path: Path | str,
    *,
    ffprobe_path: str = "ffprobe",
    timeout: float = 30.0,
) -> MediaInfo:
    """Probe a media file's streams and duration.

    Raises:
        ProcessFailure: If ffprobe fails or times out
        RuntimeError: If ffprobe output can't be parsed
    """
    output = await runner.run(build_probe_command(ffprobe_path, file_path), timeout)
    return parse_probe_output(output)
