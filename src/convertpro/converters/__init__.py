"""
Conversion strategies for the engine.

This package provides converters for:
- Images: JPEG, PNG, GIF, BMP, WebP, TIFF, and image to PDF
- Documents: PDF to image, PDF to text
- Video: MP4, AVI, MOV, MKV, WebM, FLV, 3GP, to GIF, audio extraction
- Audio: MP3, WAV, FLAC, M4A, AAC, OGG, WMA
- Archives: ZIP, RAR, 7z to ZIP
"""

from .archive import ArchiveConverter
from .audio import AudioConverter
from .base import Converter, FFmpegConverter
from .document import PdfToImageConverter, PdfToTextConverter
from .image import ImageToPdfConverter, RasterImageConverter
from .router import CapabilityDescriptor, FormatRouter, build_capability_table, get_router
from .video import AudioExtractor, VideoConverter, VideoToGifConverter

__all__ = [
    "ArchiveConverter",
    "AudioConverter",
    "AudioExtractor",
    "CapabilityDescriptor",
    "Converter",
    "FFmpegConverter",
    "FormatRouter",
    "ImageToPdfConverter",
    "PdfToImageConverter",
    "PdfToTextConverter",
    "RasterImageConverter",
    "VideoConverter",
    "VideoToGifConverter",
    "build_capability_table",
    "get_router",
]
