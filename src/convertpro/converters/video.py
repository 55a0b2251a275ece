"""
Video converters using FFmpeg.

- VideoConverter: MP4, AVI, MOV, MKV, WebM, FLV, 3GP -> MP4, AVI, MOV, WebM
- VideoToGifConverter: trimmed, resampled animated GIF
- AudioExtractor: drops the video stream and re-encodes the audio
"""

from pathlib import Path
from typing import Optional

from ..logging_config import get_logger
from ..models import ConversionOptions
from .audio import get_audio_codec, resolve_bitrate
from .base import FFmpegConverter, format_seconds

logger = get_logger("converters.video")

SUPPORTED_INPUT_FORMATS = ("mp4", "avi", "mov", "mkv", "webm", "flv", "3gp")
SUPPORTED_OUTPUT_FORMATS = ("mp4", "avi", "mov", "webm")
AUDIO_OUTPUT_FORMATS = ("mp3", "wav", "aac")

DEFAULT_QUALITY = "medium"

QUALITY_PRESETS = {
    "high": {"crf": "18", "qscale": "2"},
    "medium": {"crf": "23", "qscale": "4"},
    "low": {"crf": "28", "qscale": "6"},
}

CODEC_MAP = {
    "mp4": {"video": "libx264", "audio": "aac"},
    "mov": {"video": "libx264", "audio": "aac"},
    "webm": {"video": "libvpx-vp9", "audio": "libopus"},
    "avi": {"video": "mpeg4", "audio": "libmp3lame"},
}

# Containers that need the moov atom up front to play while downloading
FASTSTART_FORMATS = ("mp4", "mov")

GIF_DEFAULT_FPS = 15
GIF_DEFAULT_WIDTH = 480
GIF_DEFAULT_DURATION = 10.0


def _trim_args(options: ConversionOptions) -> list[str]:
    args = []
    if options.start_time:
        args.extend(["-ss", format_seconds(options.start_time)])
    if options.duration:
        args.extend(["-t", format_seconds(options.duration)])
    return args


class VideoConverter(FFmpegConverter):
    """Transcode videos between containers using FFmpeg."""

    name = "video"

    @staticmethod
    def resolve_quality(quality: Optional[int | str]) -> dict:
        if isinstance(quality, str) and quality in QUALITY_PRESETS:
            return QUALITY_PRESETS[quality]
        if quality is not None:
            logger.debug(f"Quality {quality!r} is not a video preset, using {DEFAULT_QUALITY}")
        return QUALITY_PRESETS[DEFAULT_QUALITY]

    def build_args(self, source: Path, output: Path, options: ConversionOptions) -> list[str]:
        """Build FFmpeg arguments for video transcoding."""
        target_format = self.output_format(output)
        codecs = CODEC_MAP.get(target_format, CODEC_MAP["mp4"])
        preset = self.resolve_quality(options.quality)

        args = ["-y", "-i", str(source), *_trim_args(options)]
        args.extend(["-c:v", codecs["video"], "-c:a", codecs["audio"]])

        if codecs["video"] == "mpeg4":
            args.extend(["-q:v", preset["qscale"]])
        else:
            args.extend(["-crf", preset["crf"]])
            if codecs["video"] == "libvpx-vp9":
                args.extend(["-b:v", "0"])

        if options.resolution:
            width, height = options.resolution.split("x")
            args.extend(["-vf", f"scale={width}:{height}"])

        if codecs["video"] == "libx264":
            args.extend(["-preset", "fast"])
        elif codecs["video"] == "libvpx-vp9":
            args.extend(["-deadline", "good", "-cpu-used", "4"])

        if target_format in FASTSTART_FORMATS:
            args.extend(["-movflags", "+faststart"])

        args.append(str(output))
        return args


class VideoToGifConverter(FFmpegConverter):
    """Convert a window of a video into a looping animated GIF."""

    name = "video-to-gif"

    def duration_hint(self, options: ConversionOptions) -> Optional[float]:
        return options.duration or GIF_DEFAULT_DURATION

    def build_args(self, source: Path, output: Path, options: ConversionOptions) -> list[str]:
        """Build FFmpeg arguments for GIF output with a generated palette."""
        fps = options.fps or GIF_DEFAULT_FPS
        width = options.width or GIF_DEFAULT_WIDTH
        start = options.start_time or 0
        duration = options.duration or GIF_DEFAULT_DURATION

        vf_filter = (
            f"fps={fps},scale={width}:-1:flags=lanczos,"
            "split[s0][s1];[s0]palettegen[p];[s1][p]paletteuse"
        )

        return [
            "-y",
            "-ss",
            format_seconds(start),
            "-t",
            format_seconds(duration),
            "-i",
            str(source),
            "-vf",
            vf_filter,
            "-loop",
            "0",
            str(output),
        ]


class AudioExtractor(FFmpegConverter):
    """Extract the audio track of a video file."""

    name = "audio-extract"

    def build_args(self, source: Path, output: Path, options: ConversionOptions) -> list[str]:
        """Build FFmpeg arguments for audio extraction."""
        return [
            "-y",
            "-i",
            str(source),
            *_trim_args(options),
            "-vn",
            "-acodec",
            get_audio_codec(self.output_format(output)),
            "-b:a",
            resolve_bitrate(options.quality),
            str(output),
        ]
