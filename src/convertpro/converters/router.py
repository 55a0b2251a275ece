"""
Capability table and format routing.

The table is an ordered tuple of descriptors. Resolution scans it in
declaration order and returns the first descriptor accepting both formats;
there is no scoring, so order decides ties.
"""

from dataclasses import dataclass
from typing import Optional

from ..logging_config import UnsupportedConversionError, get_logger
from ..models import normalize_format
from ..runner import ProcessRunner
from . import archive, audio, image, video
from .archive import ArchiveConverter
from .audio import AudioConverter
from .base import Converter
from .document import PdfToImageConverter, PdfToTextConverter
from .image import ImageToPdfConverter, RasterImageConverter
from .video import AudioExtractor, VideoConverter, VideoToGifConverter

logger = get_logger("converters.router")


@dataclass(frozen=True)
class CapabilityDescriptor:
    """Binds input and output format tokens to a strategy."""

    inputs: tuple[str, ...]
    outputs: tuple[str, ...]
    strategy: Converter

    def accepts(self, input_format: str, output_format: str) -> bool:
        return input_format in self.inputs and output_format in self.outputs

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy.name,
            "input": list(self.inputs),
            "output": list(self.outputs),
        }


def build_capability_table(
    runner: Optional[ProcessRunner] = None,
) -> tuple[CapabilityDescriptor, ...]:
    """Build the default table. FFmpeg strategies share ``runner``."""
    runner = runner or ProcessRunner()

    return (
        CapabilityDescriptor(
            image.SUPPORTED_INPUT_FORMATS, image.SUPPORTED_OUTPUT_FORMATS, RasterImageConverter()
        ),
        CapabilityDescriptor(image.SUPPORTED_INPUT_FORMATS, ("pdf",), ImageToPdfConverter()),
        CapabilityDescriptor(("pdf",), ("jpg", "jpeg", "png"), PdfToImageConverter()),
        CapabilityDescriptor(
            video.SUPPORTED_INPUT_FORMATS, video.SUPPORTED_OUTPUT_FORMATS, VideoConverter(runner)
        ),
        CapabilityDescriptor(video.SUPPORTED_INPUT_FORMATS, ("gif",), VideoToGifConverter(runner)),
        CapabilityDescriptor(
            video.SUPPORTED_INPUT_FORMATS, video.AUDIO_OUTPUT_FORMATS, AudioExtractor(runner)
        ),
        CapabilityDescriptor(
            audio.SUPPORTED_INPUT_FORMATS, audio.SUPPORTED_OUTPUT_FORMATS, AudioConverter(runner)
        ),
        CapabilityDescriptor(("pdf",), ("txt",), PdfToTextConverter()),
        CapabilityDescriptor(
            archive.SUPPORTED_INPUT_FORMATS, archive.SUPPORTED_OUTPUT_FORMATS, ArchiveConverter()
        ),
    )


class FormatRouter:
    """Resolve conversion requests to strategies."""

    def __init__(self, table: Optional[tuple[CapabilityDescriptor, ...]] = None):
        self._table = tuple(table) if table is not None else build_capability_table()

    @property
    def table(self) -> tuple[CapabilityDescriptor, ...]:
        return self._table

    def resolve_descriptor(self, input_format: str, output_format: str) -> CapabilityDescriptor:
        """
        First descriptor accepting the pair.

        Raises:
            UnsupportedConversionError: If no descriptor matches
        """
        src = normalize_format(input_format)
        tgt = normalize_format(output_format)

        for descriptor in self._table:
            if descriptor.accepts(src, tgt):
                return descriptor

        raise UnsupportedConversionError(src, tgt)

    def resolve(self, input_format: str, output_format: str) -> Converter:
        """Strategy for the pair; raises UnsupportedConversionError."""
        strategy = self.resolve_descriptor(input_format, output_format).strategy
        logger.debug(f"Routing {input_format} -> {output_format} to {strategy.name}")
        return strategy

    def is_conversion_supported(self, input_format: str, output_format: str) -> bool:
        """Check if a conversion path is supported."""
        try:
            self.resolve_descriptor(input_format, output_format)
            return True
        except UnsupportedConversionError:
            return False

    def supported_targets(self, input_format: str) -> list[str]:
        """Every output format reachable from ``input_format``, in table order."""
        src = normalize_format(input_format)
        targets: list[str] = []
        for descriptor in self._table:
            if src in descriptor.inputs:
                targets.extend(t for t in descriptor.outputs if t not in targets)
        return targets

    def get_supported_conversions(self) -> list[dict]:
        """All conversion paths in table order."""
        return [descriptor.to_dict() for descriptor in self._table]


_default_router: Optional[FormatRouter] = None


def get_router() -> FormatRouter:
    """Process-wide router built on first use."""
    global _default_router
    if _default_router is None:
        _default_router = FormatRouter()
    return _default_router
