"""
Tests for video converters.
"""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.convertpro.converters.video import (
    AudioExtractor,
    CODEC_MAP,
    QUALITY_PRESETS,
    VideoConverter,
    VideoToGifConverter,
)
from src.convertpro.logging_config import ProcessExecutionError
from src.convertpro.models import ConversionOptions
from src.convertpro.progress import ProgressTracker

SOURCE = Path("/media/clip.mp4")


def _opts(**kwargs) -> ConversionOptions:
    return ConversionOptions.from_mapping(kwargs)


class TestVideoConverter:
    """Tests for VideoConverter argument building."""

    def test_quality_presets(self):
        """Test quality preset resolution falls back to medium."""
        assert VideoConverter.resolve_quality("high") == QUALITY_PRESETS["high"]
        assert VideoConverter.resolve_quality(None) == QUALITY_PRESETS["medium"]
        assert VideoConverter.resolve_quality(40) == QUALITY_PRESETS["medium"]

    def test_mp4_args(self):
        """Test H.264 output with faststart."""
        args = VideoConverter(runner=MagicMock()).build_args(
            SOURCE, Path("/out/x.mp4"), _opts(quality="high")
        )
        assert args == [
            "-y",
            "-i",
            str(SOURCE),
            "-c:v",
            "libx264",
            "-c:a",
            "aac",
            "-crf",
            "18",
            "-preset",
            "fast",
            "-movflags",
            "+faststart",
            "/out/x.mp4",
        ]

    def test_webm_args(self):
        """Test VP9 uses constant quality mode."""
        args = VideoConverter(runner=MagicMock()).build_args(SOURCE, Path("/out/x.webm"), _opts())
        assert args[args.index("-c:v") + 1] == "libvpx-vp9"
        assert args[args.index("-c:a") + 1] == "libopus"
        assert args[args.index("-crf") + 1] == "23"
        assert args[args.index("-b:v") + 1] == "0"
        assert "-movflags" not in args

    def test_avi_args(self):
        """Test MPEG-4 Part 2 uses a qscale."""
        args = VideoConverter(runner=MagicMock()).build_args(SOURCE, Path("/out/x.avi"), _opts(quality="low"))
        assert args[args.index("-c:v") + 1] == CODEC_MAP["avi"]["video"]
        assert args[args.index("-q:v") + 1] == "6"
        assert "-crf" not in args

    def test_resolution_and_trim(self):
        """Test scaling and trimming options."""
        args = VideoConverter(runner=MagicMock()).build_args(
            SOURCE, Path("/out/x.mov"), _opts(resolution="1280x720", startTime=1.5, duration=30)
        )
        assert args[args.index("-vf") + 1] == "scale=1280:720"
        assert args[args.index("-ss") + 1] == "1.5"
        assert args[args.index("-t") + 1] == "30"
        assert args.index("-ss") > args.index("-i")
        assert args[-1] == "/out/x.mov"


class TestVideoToGifConverter:
    """Tests for VideoToGifConverter."""

    def test_gif_args(self):
        """Test a 5 second window from 2s, 10 fps, 320 wide."""
        options = _opts(fps=10, width=320, startTime=2, duration=5)
        args = VideoToGifConverter(runner=MagicMock()).build_args(SOURCE, Path("/out/x.gif"), options)

        assert args == [
            "-y",
            "-ss",
            "2",
            "-t",
            "5",
            "-i",
            str(SOURCE),
            "-vf",
            "fps=10,scale=320:-1:flags=lanczos,split[s0][s1];[s0]palettegen[p];[s1][p]paletteuse",
            "-loop",
            "0",
            "/out/x.gif",
        ]

    def test_gif_defaults(self):
        """Test defaults: from the start, 10 seconds, 15 fps, 480 wide."""
        args = VideoToGifConverter(runner=MagicMock()).build_args(SOURCE, Path("/out/x.gif"), _opts())
        assert args[1:5] == ["-ss", "0", "-t", "10"]
        assert args[args.index("-vf") + 1].startswith("fps=15,scale=480:-1:flags=lanczos,")

    def test_duration_hint(self):
        """Test progress is measured against the GIF window."""
        converter = VideoToGifConverter(runner=MagicMock())
        assert converter.duration_hint(_opts()) == 10
        assert converter.duration_hint(_opts(duration=3)) == 3


class TestAudioExtractor:
    """Tests for AudioExtractor."""

    def test_mp3_args(self):
        args = AudioExtractor(runner=MagicMock()).build_args(SOURCE, Path("/out/x.mp3"), _opts())
        assert args == [
            "-y",
            "-i",
            str(SOURCE),
            "-vn",
            "-acodec",
            "libmp3lame",
            "-b:a",
            "192k",
            "/out/x.mp3",
        ]

    def test_quality_as_bitrate(self):
        """Test quality is read as a bitrate."""
        args = AudioExtractor(runner=MagicMock()).build_args(
            SOURCE, Path("/out/x.wav"), _opts(quality="high", startTime=10)
        )
        assert args[args.index("-acodec") + 1] == "pcm_s16le"
        assert args[args.index("-b:a") + 1] == "320k"
        assert args[args.index("-ss") + 1] == "10"

    @pytest.mark.parametrize("quality,expected", [("2M", "2M"), ("2m", "2M"), ("96K", "96k")])
    def test_bitrate_quality_keeps_unit(self, quality, expected):
        """Test a bitrate quality reaches FFmpeg with a mega or kilo unit, never milli."""
        args = AudioExtractor(runner=MagicMock()).build_args(
            SOURCE, Path("/out/x.aac"), _opts(quality=quality)
        )
        assert args[args.index("-b:a") + 1] == expected


class TestFFmpegExecution:
    """Tests for strategy execution through the runner."""

    @pytest.mark.asyncio
    async def test_execute_passes_args_and_hint(self, tmp_path):
        """Test execute hands the argument vector and window to the runner."""
        runner = MagicMock()
        runner.run = AsyncMock()
        converter = VideoToGifConverter(runner=runner)
        tracker = ProgressTracker()
        output = tmp_path / "x.gif"

        await converter.execute(SOURCE, output, _opts(duration=4), tracker)

        args, progress = runner.run.await_args.args
        assert args[-1] == str(output)
        assert progress is tracker
        assert runner.run.await_args.kwargs == {"duration_hint": 4}

    @pytest.mark.asyncio
    async def test_execute_failure_removes_partial(self, tmp_path):
        """Test a failed run leaves no file at the output path."""
        output = tmp_path / "x.mp4"

        async def fail(*args, **kwargs):
            output.write_bytes(b"half")
            raise ProcessExecutionError(1, "boom")

        runner = MagicMock()
        runner.run = fail

        with pytest.raises(ProcessExecutionError):
            await VideoConverter(runner=runner).execute(SOURCE, output, _opts(), ProgressTracker())

        assert not output.exists()
