"""
PDF converters using PyMuPDF.

- PdfToImageConverter: renders one page to JPEG or PNG
- PdfToTextConverter: extracts the text layer of every page
"""

import asyncio
from pathlib import Path

from ..async_utils import concurrency_limiter
from ..logging_config import ConversionError, get_logger
from ..models import ConversionOptions
from ..progress import ProgressTracker
from .base import Converter, remove_partial
from .image import resolve_quality

logger = get_logger("converters.document")

DEFAULT_DPI = 150
PAGE_SEPARATOR = "\f"


def _open_pdf(source: Path):
    import fitz  # PyMuPDF

    try:
        doc = fitz.open(str(source))
    except Exception as e:
        raise ConversionError(
            f"Failed to open PDF {source.name}: {e}",
            suggestion="Ensure the file is a valid, unencrypted PDF",
        ) from e

    if doc.page_count == 0:
        doc.close()
        raise ConversionError(f"PDF has no pages: {source.name}")
    return doc


class PdfToImageConverter(Converter):
    """Render a single PDF page to a raster image."""

    name = "pdf-to-image"

    async def execute(
        self,
        source: Path,
        output: Path,
        options: ConversionOptions,
        progress: ProgressTracker,
    ) -> None:
        progress.update(20, "Rendering PDF page...")

        async with concurrency_limiter:
            await asyncio.get_running_loop().run_in_executor(
                None, self._render_sync, source, output, options
            )

        progress.update(80, "Saving image...")
        logger.info(f"Rendered {source} -> {output}")

    def _render_sync(self, source: Path, output: Path, options: ConversionOptions) -> None:
        from PIL import Image

        page_number = options.page or 1
        dpi = options.dpi or DEFAULT_DPI
        target_format = self.output_format(output)

        doc = _open_pdf(source)
        try:
            if page_number > doc.page_count:
                raise ConversionError(
                    f"Page {page_number} out of range, document has {doc.page_count} pages"
                )

            pix = doc[page_number - 1].get_pixmap(dpi=dpi, alpha=False)
            img = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)

            if target_format in ("jpg", "jpeg"):
                img.save(output, format="JPEG", quality=resolve_quality(options.quality))
            else:
                img.save(output, format="PNG")
        except Exception:
            remove_partial(output)
            raise
        finally:
            doc.close()


class PdfToTextConverter(Converter):
    """Extract the text layer of a PDF into a UTF-8 text file."""

    name = "pdf-to-text"

    async def execute(
        self,
        source: Path,
        output: Path,
        options: ConversionOptions,
        progress: ProgressTracker,
    ) -> None:
        progress.update(50, "Extracting text from PDF...")

        async with concurrency_limiter:
            page_count = await asyncio.get_running_loop().run_in_executor(
                None, self._extract_sync, source, output
            )

        progress.update(80, "Saving text...")
        logger.info(f"Extracted text from {page_count} pages: {source} -> {output}")

    @staticmethod
    def _extract_sync(source: Path, output: Path) -> int:
        doc = _open_pdf(source)
        try:
            pages = [page.get_text() for page in doc]
            page_count = doc.page_count
        finally:
            doc.close()

        # Scanned documents have no text layer
        if not any(text.strip() for text in pages):
            raise ConversionError(
                f"No extractable text found in {source.name}",
                suggestion="The PDF may be scanned images; run OCR before converting to text",
            )

        try:
            output.write_text(PAGE_SEPARATOR.join(text.rstrip() for text in pages), encoding="utf-8")
        except Exception:
            remove_partial(output)
            raise

        return page_count
