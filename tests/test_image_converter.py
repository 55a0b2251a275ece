"""
Tests for image converters.
"""

import pytest
from PIL import Image

from src.convertpro.converters.image import (
    ImageToPdfConverter,
    RasterImageConverter,
    SUPPORTED_INPUT_FORMATS,
    SUPPORTED_OUTPUT_FORMATS,
    fit_size,
    png_compress_level,
    resolve_quality,
)
from src.convertpro.logging_config import UnsupportedEmbedFormatError
from src.convertpro.models import ConversionOptions
from src.convertpro.progress import ProgressTracker


class TestImageHelpers:
    """Tests for quality and sizing helpers."""

    def test_quality_presets(self):
        """Test quality preset resolution."""
        assert resolve_quality(None) == 90
        assert resolve_quality("low") == 60
        assert resolve_quality("medium") == 85
        assert resolve_quality("high") == 95
        assert resolve_quality(50) == 50
        assert resolve_quality("320k") == 90

    @pytest.mark.parametrize("quality,level", [(0, 0), (44, 4), (90, 9), (100, 9)])
    def test_png_compress_level(self, quality, level):
        assert png_compress_level(quality) == level

    @pytest.mark.parametrize(
        "size,width,height,expected",
        [
            ((1600, 1200), 800, None, (800, 600)),
            ((1600, 1200), None, 300, (400, 300)),
            ((1600, 1200), 800, 800, (800, 600)),
            ((400, 300), 800, None, (400, 300)),
            ((1000, 10), 50, None, (50, 1)),
        ],
    )
    def test_fit_size(self, size, width, height, expected):
        """Test fit keeps aspect and never upscales."""
        assert fit_size(size, width, height) == expected

    def test_format_lists(self):
        assert "tiff" in SUPPORTED_INPUT_FORMATS
        assert "tiff" not in SUPPORTED_OUTPUT_FORMATS
        assert "pdf" not in SUPPORTED_OUTPUT_FORMATS


class TestRasterImageConverter:
    """Tests for RasterImageConverter."""

    @pytest.mark.asyncio
    async def test_jpg_to_png_resized(self, sample_jpg, tmp_path, events):
        """Test a JPEG becomes a PNG no wider than the requested width."""
        output = tmp_path / "out.png"
        options = ConversionOptions.from_mapping({"quality": 95, "width": 800})

        await RasterImageConverter().execute(sample_jpg, output, options, ProgressTracker(events.append))

        with Image.open(output) as img:
            assert img.format == "PNG"
            assert img.size == (800, 600)
        assert [e.percent for e in events] == [20, 80]

    @pytest.mark.asyncio
    async def test_no_upscale(self, small_jpg, tmp_path):
        """Test a smaller source keeps its size."""
        output = tmp_path / "out.webp"
        options = ConversionOptions.from_mapping({"width": 800, "height": 800})

        await RasterImageConverter().execute(small_jpg, output, options, ProgressTracker())

        with Image.open(output) as img:
            assert img.format == "WEBP"
            assert img.size == (400, 300)

    @pytest.mark.asyncio
    async def test_cover_crops(self, sample_jpg, tmp_path):
        """Test cover mode fills the box exactly."""
        output = tmp_path / "thumb.jpg"
        options = ConversionOptions.from_mapping({"width": 300, "height": 300, "resize": "cover"})

        await RasterImageConverter().execute(sample_jpg, output, options, ProgressTracker())

        with Image.open(output) as img:
            assert img.size == (300, 300)

    @pytest.mark.asyncio
    async def test_cover_never_upscales(self, small_jpg, tmp_path):
        output = tmp_path / "thumb.jpg"
        options = ConversionOptions.from_mapping({"width": 1000, "height": 1000, "resize": "cover"})

        await RasterImageConverter().execute(small_jpg, output, options, ProgressTracker())

        with Image.open(output) as img:
            assert img.size == (400, 300)

    @pytest.mark.asyncio
    async def test_rgba_to_jpeg(self, sample_png, tmp_path):
        """Test alpha is dropped for JPEG output."""
        output = tmp_path / "out.jpg"

        await RasterImageConverter().execute(sample_png, output, ConversionOptions(), ProgressTracker())

        with Image.open(output) as img:
            assert img.format == "JPEG"
            assert img.mode == "RGB"

    @pytest.mark.asyncio
    async def test_gif_to_gif_is_copied(self, sample_gif, tmp_path):
        """Test GIF to GIF keeps the animation byte for byte."""
        output = tmp_path / "out.gif"
        options = ConversionOptions.from_mapping({"width": 10})

        await RasterImageConverter().execute(sample_gif, output, options, ProgressTracker())

        assert output.read_bytes() == sample_gif.read_bytes()

    @pytest.mark.asyncio
    async def test_png_to_bmp(self, sample_png, tmp_path):
        output = tmp_path / "out.bmp"

        await RasterImageConverter().execute(sample_png, output, ConversionOptions(), ProgressTracker())

        with Image.open(output) as img:
            assert img.format == "BMP"

    @pytest.mark.asyncio
    async def test_corrupt_source_leaves_no_output(self, tmp_path):
        """Test a decode failure raises and leaves nothing behind."""
        source = tmp_path / "broken.jpg"
        source.write_bytes(b"not an image")
        output = tmp_path / "out.png"

        with pytest.raises(Exception):
            await RasterImageConverter().execute(source, output, ConversionOptions(), ProgressTracker())

        assert not output.exists()


class TestImageToPdfConverter:
    """Tests for ImageToPdfConverter."""

    @pytest.mark.asyncio
    async def test_page_matches_image(self, sample_png, tmp_path, events):
        """Test the single page has the image's pixel dimensions."""
        import fitz

        output = tmp_path / "out.pdf"
        await ImageToPdfConverter().execute(
            sample_png, output, ConversionOptions(), ProgressTracker(events.append)
        )

        with fitz.open(str(output)) as doc:
            assert doc.page_count == 1
            assert doc[0].rect.width == 300
            assert doc[0].rect.height == 200
            assert len(doc[0].get_images()) == 1
        assert [e.percent for e in events] == [20, 80]

    @pytest.mark.asyncio
    async def test_jpeg_embed(self, small_jpg, tmp_path):
        import fitz

        output = tmp_path / "out.pdf"
        await ImageToPdfConverter().execute(small_jpg, output, ConversionOptions(), ProgressTracker())

        with fitz.open(str(output)) as doc:
            assert (doc[0].rect.width, doc[0].rect.height) == (400, 300)

    @pytest.mark.asyncio
    async def test_unsupported_embed_format(self, sample_gif, tmp_path):
        """Test only JPEG and PNG can be embedded."""
        output = tmp_path / "out.pdf"

        with pytest.raises(UnsupportedEmbedFormatError) as exc_info:
            await ImageToPdfConverter().execute(sample_gif, output, ConversionOptions(), ProgressTracker())

        assert "gif" in str(exc_info.value)
        assert not output.exists()
