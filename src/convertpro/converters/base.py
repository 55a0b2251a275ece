"""Common interface for conversion strategies."""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..logging_config import get_logger
from ..models import ConversionOptions
from ..progress import ProgressTracker
from ..runner import ProcessRunner

logger = get_logger("converters")


class Converter(ABC):
    """One conversion strategy for a media family."""

    name: str = "converter"

    @abstractmethod
    async def execute(
        self,
        source: Path,
        output: Path,
        options: ConversionOptions,
        progress: ProgressTracker,
    ) -> None:
        """
        Convert ``source`` into ``output``.

        The output format is taken from ``output``'s extension. Implementations
        raise on failure and must not leave a file at ``output`` when they do.
        """

    @staticmethod
    def output_format(output: Path) -> str:
        return output.suffix.lower().lstrip(".")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class FFmpegConverter(Converter):
    """Strategy that delegates the work to one FFmpeg run."""

    def __init__(self, runner: Optional[ProcessRunner] = None):
        self.runner = runner or ProcessRunner()

    @abstractmethod
    def build_args(self, source: Path, output: Path, options: ConversionOptions) -> list[str]:
        """FFmpeg arguments, without the binary itself."""

    def duration_hint(self, options: ConversionOptions) -> Optional[float]:
        """Expected output length in seconds when the strategy trims the input."""
        return options.duration

    async def execute(
        self,
        source: Path,
        output: Path,
        options: ConversionOptions,
        progress: ProgressTracker,
    ) -> None:
        args = self.build_args(source, output, options)

        try:
            await self.runner.run(args, progress, duration_hint=self.duration_hint(options))
        except (Exception, asyncio.CancelledError):
            remove_partial(output)
            raise

        logger.info(f"{self.name}: {source} -> {output}")


def format_seconds(value: float) -> str:
    """Render seconds for FFmpeg without a trailing ``.0``."""
    return f"{value:.3f}".rstrip("0").rstrip(".")


def remove_partial(output: Path) -> None:
    """Best-effort removal of a half-written output file."""
    try:
        output.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to remove partial output {output}: {e}")
