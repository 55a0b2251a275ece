"""
Image converters using Pillow and PyMuPDF.

- RasterImageConverter: JPEG, PNG, GIF, BMP, WebP, TIFF -> JPEG, PNG, WebP, GIF, BMP
- ImageToPdfConverter: JPEG or PNG -> single page PDF
"""

import asyncio
import shutil
from pathlib import Path
from typing import Optional, Tuple

from ..async_utils import concurrency_limiter
from ..logging_config import UnsupportedEmbedFormatError, get_logger
from ..models import ConversionOptions
from ..progress import ProgressTracker
from .base import Converter, remove_partial

logger = get_logger("converters.image")

SUPPORTED_INPUT_FORMATS = ("jpg", "jpeg", "png", "gif", "bmp", "webp", "tiff")
SUPPORTED_OUTPUT_FORMATS = ("jpg", "jpeg", "png", "webp", "gif", "bmp")
PDF_EMBED_FORMATS = ("jpg", "jpeg", "png")

FORMAT_PILLOW_MAP = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "gif": "GIF",
    "webp": "WEBP",
    "tiff": "TIFF",
    "tif": "TIFF",
    "bmp": "BMP",
}

DEFAULT_QUALITY = 90

QUALITY_PRESETS = {
    "low": 60,
    "medium": 85,
    "high": 95,
}


def resolve_quality(quality: Optional[int | str]) -> int:
    """Resolve a quality option to 0-100."""
    if quality is None:
        return DEFAULT_QUALITY
    if isinstance(quality, int):
        return max(0, min(100, quality))
    return QUALITY_PRESETS.get(quality.lower(), DEFAULT_QUALITY)


def png_compress_level(quality: int) -> int:
    """PNG takes the quality scaled down by ten as its zlib level."""
    return max(0, min(9, round(quality / 10)))


def fit_size(
    source_size: Tuple[int, int], width: Optional[int], height: Optional[int]
) -> Tuple[int, int]:
    """Largest size inside the width/height box keeping aspect, never upscaling."""
    src_w, src_h = source_size
    scale = min((width or src_w) / src_w, (height or src_h) / src_h, 1.0)
    return max(1, round(src_w * scale)), max(1, round(src_h * scale))


class RasterImageConverter(Converter):
    """Convert raster images between formats using Pillow."""

    name = "image"

    async def execute(
        self,
        source: Path,
        output: Path,
        options: ConversionOptions,
        progress: ProgressTracker,
    ) -> None:
        progress.update(20, "Processing image...")

        async with concurrency_limiter:
            await asyncio.get_running_loop().run_in_executor(
                None, self._convert_sync, source, output, options
            )

        progress.update(80, "Saving file...")
        logger.info(f"Converted {source} -> {output}")

    def _convert_sync(self, source: Path, output: Path, options: ConversionOptions) -> None:
        target_format = self.output_format(output)
        source_format = source.suffix.lower().lstrip(".")

        # Re-encoding a GIF drops its animation, so GIF to GIF is a byte copy
        if target_format == "gif" and source_format == "gif":
            shutil.copyfile(source, output)
            return

        try:
            self._convert_pillow(source, output, target_format, options)
        except Exception:
            remove_partial(output)
            raise

    def _convert_pillow(
        self,
        source: Path,
        output: Path,
        target_format: str,
        options: ConversionOptions,
    ) -> None:
        from PIL import Image

        pillow_format = FORMAT_PILLOW_MAP.get(target_format, target_format.upper())
        quality = resolve_quality(options.quality)

        with Image.open(source) as img:
            img = self._resize(img, options)
            img = self._prepare_mode(img, pillow_format)

            save_kwargs: dict = {"format": pillow_format}
            if pillow_format in ("JPEG", "WEBP"):
                save_kwargs["quality"] = quality
            elif pillow_format == "PNG":
                save_kwargs["compress_level"] = png_compress_level(quality)

            img.save(output, **save_kwargs)

    @staticmethod
    def _resize(img, options: ConversionOptions):
        from PIL import Image, ImageOps

        width, height = options.width, options.height
        if not width and not height:
            return img

        src_w, src_h = img.size

        if options.resize == "cover" and width and height:
            if src_w < width or src_h < height:
                return img
            return ImageOps.fit(img, (width, height), Image.Resampling.LANCZOS)

        size = fit_size(img.size, width, height)
        if size == (src_w, src_h):
            return img
        return img.resize(size, Image.Resampling.LANCZOS)

    @staticmethod
    def _prepare_mode(img, pillow_format: str):
        if pillow_format == "JPEG":
            if img.mode not in ("RGB", "L", "CMYK"):
                return img.convert("RGB")
            return img

        if img.mode not in ("1", "L", "P", "RGB", "RGBA"):
            has_alpha = "A" in img.mode or "transparency" in img.info
            return img.convert("RGBA" if has_alpha else "RGB")
        return img


class ImageToPdfConverter(Converter):
    """Embed a single JPEG or PNG into a PDF page of the same pixel size."""

    name = "image-to-pdf"

    async def execute(
        self,
        source: Path,
        output: Path,
        options: ConversionOptions,
        progress: ProgressTracker,
    ) -> None:
        source_format = source.suffix.lower().lstrip(".")
        if source_format not in PDF_EMBED_FORMATS:
            raise UnsupportedEmbedFormatError(
                f"Unsupported image format for PDF conversion: {source_format}",
                suggestion="Convert the image to JPEG or PNG first",
            )

        progress.update(20, "Creating PDF document...")

        async with concurrency_limiter:
            await asyncio.get_running_loop().run_in_executor(None, self._build_pdf, source, output)

        progress.update(80, "Saving PDF...")
        logger.info(f"Converted {source} -> {output}")

    @staticmethod
    def _build_pdf(source: Path, output: Path) -> None:
        import fitz  # PyMuPDF
        from PIL import Image

        with Image.open(source) as img:
            width, height = img.size

        doc = fitz.open()
        try:
            page = doc.new_page(width=width, height=height)
            page.insert_image(page.rect, filename=str(source))
            doc.save(str(output))
        except Exception:
            remove_partial(output)
            raise
        finally:
            doc.close()
