"""Tests for ffprobe output parsing."""

import pytest

from hookmix.utils.media_info import build_probe_command, parse_probe_output, probe_media
from tests.conftest import FakeProcessRunner, probe_json


class TestParseProbeOutput:
    def test_video_with_audio(self):
        info = parse_probe_output(probe_json(duration=5.5))

        assert info.has_video
        assert info.has_audio
        assert info.width == 1280
        assert info.height == 720
        assert info.duration_ms == 5500
        assert info.duration_s == 5.5

    def test_video_without_audio(self):
        info = parse_probe_output(probe_json(has_audio=False))

        assert info.has_video
        assert not info.has_audio

    def test_audio_only_file(self):
        info = parse_probe_output(probe_json(has_video=False))

        assert not info.has_video
        assert info.width is None

    def test_missing_duration(self):
        info = parse_probe_output('{"streams": [{"codec_type": "video"}], "format": {}}')

        assert info.duration_ms is None
        assert info.duration_s is None

    def test_non_numeric_durations_are_ignored(self):
        raw = (
            '{"streams": [{"codec_type": "video", "duration": "N/A"}, {"codec_type": "audio"}],'
            ' "format": {"duration": "N/A"}}'
        )

        info = parse_probe_output(raw)

        assert info.has_video and info.has_audio
        assert info.duration_ms is None

    def test_stream_duration_used_when_format_has_none(self):
        info = parse_probe_output('{"streams": [{"codec_type": "video", "duration": "1.5"}], "format": {}}')

        assert info.duration_ms == 1500

    def test_invalid_json_raises(self):
        with pytest.raises(RuntimeError, match="Failed to parse ffprobe output"):
            parse_probe_output("not json")


class TestProbeMedia:
    def test_probe_command_shape(self):
        cmd = build_probe_command("ffprobe", "/tmp/clip.mp4")

        assert cmd[0] == "ffprobe"
        assert "-show_streams" in cmd
        assert "-show_format" in cmd
        assert cmd[-1] == "/tmp/clip.mp4"

    @pytest.mark.asyncio
    async def test_probe_media_uses_runner(self):
        runner = FakeProcessRunner(probes={"clip.mp4": probe_json(has_audio=False, duration=2.0)})

        info = await probe_media(runner, "/tmp/clip.mp4", ffprobe_path="ffprobe", timeout=3)

        assert info.has_video and not info.has_audio
        assert info.duration_ms == 2000
        assert runner.calls[0][0] == "ffprobe"
