"""
Audio converter using FFmpeg.

Supports conversions between common audio formats:
- Input: MP3, WAV, FLAC, M4A, AAC, OGG, WMA
- Output: MP3, WAV, FLAC, M4A, AAC, OGG
"""

from pathlib import Path
from typing import Optional

from ..logging_config import get_logger
from ..models import ConversionOptions
from .base import FFmpegConverter

logger = get_logger("converters.audio")

SUPPORTED_INPUT_FORMATS = ("mp3", "wav", "flac", "m4a", "aac", "ogg", "wma")
SUPPORTED_OUTPUT_FORMATS = ("mp3", "wav", "flac", "m4a", "aac", "ogg")

DEFAULT_BITRATE = "192k"
DEFAULT_SAMPLE_RATE = 44100
DEFAULT_CODEC = "libmp3lame"

CODEC_MAP = {
    "mp3": "libmp3lame",
    "aac": "aac",
    "m4a": "aac",
    "wav": "pcm_s16le",
    "flac": "flac",
    "ogg": "libvorbis",
}

QUALITY_PRESETS = {
    "low": "128k",
    "medium": "192k",
    "high": "320k",
}


def get_audio_codec(audio_format: str) -> str:
    """Encoder for a target extension; unknown extensions fall back to MP3."""
    return CODEC_MAP.get(audio_format.lower().lstrip("."), DEFAULT_CODEC)


def resolve_bitrate(quality: Optional[int | str], default: str = DEFAULT_BITRATE) -> str:
    """Interpret a quality option as an audio bitrate string."""
    if isinstance(quality, str):
        return QUALITY_PRESETS.get(quality, quality)
    if quality is not None:
        logger.debug(f"Numeric quality {quality} has no bitrate meaning, using {default}")
    return default


class AudioConverter(FFmpegConverter):
    """Re-encode audio files between formats using FFmpeg."""

    name = "audio"

    def duration_hint(self, options: ConversionOptions) -> Optional[float]:
        return None

    def build_args(self, source: Path, output: Path, options: ConversionOptions) -> list[str]:
        """Build FFmpeg arguments for audio conversion."""
        target_format = self.output_format(output)

        args = [
            "-y",
            "-i",
            str(source),
            "-acodec",
            get_audio_codec(target_format),
            "-b:a",
            options.bitrate or DEFAULT_BITRATE,
            "-ar",
            str(options.sample_rate or DEFAULT_SAMPLE_RATE),
        ]

        if target_format == "mp3":
            args.extend(["-id3v2_version", "3"])

        args.append(str(output))
        return args
