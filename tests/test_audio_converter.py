"""
Tests for audio converter.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from src.convertpro.converters.audio import (
    AudioConverter,
    DEFAULT_CODEC,
    SUPPORTED_INPUT_FORMATS,
    SUPPORTED_OUTPUT_FORMATS,
    get_audio_codec,
    resolve_bitrate,
)
from src.convertpro.models import ConversionOptions


class TestAudioCodecs:
    """Tests for codec and bitrate lookup."""

    @pytest.mark.parametrize(
        "fmt,codec",
        [
            ("mp3", "libmp3lame"),
            ("aac", "aac"),
            ("m4a", "aac"),
            ("wav", "pcm_s16le"),
            ("flac", "flac"),
            ("ogg", "libvorbis"),
            (".OGG", "libvorbis"),
        ],
    )
    def test_codec_by_extension(self, fmt, codec):
        assert get_audio_codec(fmt) == codec

    def test_unknown_extension_defaults_to_mp3(self):
        """Test unknown extensions use the MP3 encoder."""
        assert get_audio_codec("opus") == DEFAULT_CODEC == "libmp3lame"

    @pytest.mark.parametrize(
        "quality,bitrate",
        [(None, "192k"), ("low", "128k"), ("medium", "192k"), ("high", "320k"), ("256k", "256k"), (90, "192k")],
    )
    def test_resolve_bitrate(self, quality, bitrate):
        assert resolve_bitrate(quality) == bitrate

    def test_format_lists(self):
        """Test WMA is read but never written."""
        assert "wma" in SUPPORTED_INPUT_FORMATS
        assert "wma" not in SUPPORTED_OUTPUT_FORMATS


class TestAudioConverter:
    """Tests for AudioConverter argument building."""

    def test_mp3_args(self):
        """Test MP3 output carries an ID3v2.3 tag."""
        args = AudioConverter(runner=MagicMock()).build_args(
            Path("/in/song.flac"), Path("/out/song.mp3"), ConversionOptions()
        )
        assert args == [
            "-y",
            "-i",
            "/in/song.flac",
            "-acodec",
            "libmp3lame",
            "-b:a",
            "192k",
            "-ar",
            "44100",
            "-id3v2_version",
            "3",
            "/out/song.mp3",
        ]

    def test_bitrate_and_sample_rate(self):
        """Test explicit bitrate and sample rate options."""
        options = ConversionOptions.from_mapping({"bitrate": "96k", "sampleRate": 22050})
        args = AudioConverter(runner=MagicMock()).build_args(
            Path("/in/song.wav"), Path("/out/song.ogg"), options
        )
        assert args[args.index("-acodec") + 1] == "libvorbis"
        assert args[args.index("-b:a") + 1] == "96k"
        assert args[args.index("-ar") + 1] == "22050"
        assert "-id3v2_version" not in args

    def test_no_duration_hint(self):
        """Test audio progress uses the duration FFmpeg reports."""
        converter = AudioConverter(runner=MagicMock())
        assert converter.duration_hint(ConversionOptions.from_mapping({"duration": 5})) is None
