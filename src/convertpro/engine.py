"""
Conversion facade.

``convert()`` is the public entry point: it routes the request, hands a fresh
output path to the chosen strategy, verifies the result and relays progress
to the caller. Any failure after routing removes the output file and is
raised as ConversionFailed.
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Mapping, Optional

from .config import config
from .converters.router import FormatRouter, get_router
from .file_manager import OutputManager
from .logging_config import (
    ConversionFailed,
    FileOperationError,
    get_logger,
    log_conversion_complete,
    log_conversion_error,
    log_conversion_start,
)
from .models import ConversionOptions, ConversionRequest, ConversionResult
from .progress import ProgressSink, ProgressTracker

logger = get_logger("engine")


class ConversionEngine:
    """Composes router, strategies and output manager."""

    def __init__(
        self,
        router: Optional[FormatRouter] = None,
        output_manager: Optional[OutputManager] = None,
    ):
        self.router = router or get_router()
        self.output_manager = output_manager or OutputManager(
            config.output_dir, min_disk_space_mb=config.min_disk_space_mb
        )

    async def convert(
        self,
        input_path: str | Path,
        target_format: str,
        options: Optional[Mapping[str, Any] | ConversionOptions] = None,
        progress_sink: Optional[ProgressSink] = None,
    ) -> ConversionResult:
        """
        Convert a file to the target format.

        Args:
            input_path: Path to the source file; its extension is the input format
            target_format: Target format token (e.g. 'png', 'mp4', 'txt')
            options: Conversion options, camelCase or snake_case keys
            progress_sink: Optional callable receiving ProgressEvent objects

        Returns:
            ConversionResult describing the verified output file

        Raises:
            InvalidOptionError: If an option value is invalid (nothing touched)
            UnsupportedConversionError: If the format pair is not in the
                capability table (nothing touched)
            ConversionFailed: For every failure after routing; the cause is
                chained and no output file is left behind
        """
        request = ConversionRequest.create(input_path, target_format, options)
        return await self.run(request, progress_sink)

    async def run(
        self, request: ConversionRequest, progress_sink: Optional[ProgressSink] = None
    ) -> ConversionResult:
        """Execute an already built request."""
        strategy = self.router.resolve(request.input_format, request.target_format)

        progress = ProgressTracker(progress_sink, label=f"{request.input_path.name}: ")
        source = request.input_path
        output_path: Optional[Path] = None
        started = time.monotonic()

        log_conversion_start(
            logger,
            str(source),
            request.target_format,
            strategy=strategy.name,
            **request.options.to_dict(),
        )

        try:
            if not source.is_file():
                raise FileOperationError(f"Source file does not exist: {source}")

            output_path = self.output_manager.prepare_path(request.target_format)
            progress.update(10, "Starting conversion...")

            await strategy.execute(source, output_path, request.options, progress)

            self.output_manager.verify(output_path)
        except asyncio.CancelledError:
            self.output_manager.discard(output_path)
            logger.warning(f"Conversion cancelled: {source}")
            raise
        except Exception as e:
            self.output_manager.discard(output_path)
            log_conversion_error(logger, e)
            log_conversion_complete(logger, False, time.monotonic() - started)
            raise ConversionFailed(e) from e

        progress.complete("Conversion completed!")

        result = ConversionResult(
            output_path=output_path,
            output_file_name=output_path.name,
            input_format=request.input_format,
            output_format=request.target_format,
            output_size=output_path.stat().st_size,
            input_size=source.stat().st_size,
        )
        log_conversion_complete(
            logger,
            True,
            time.monotonic() - started,
            output_file=str(output_path),
            size=result.output_size_formatted,
        )
        return result


_default_engine: Optional[ConversionEngine] = None


def get_engine() -> ConversionEngine:
    """Process-wide engine built on first use."""
    global _default_engine
    if _default_engine is None:
        _default_engine = ConversionEngine()
    return _default_engine


async def convert(
    input_path: str | Path,
    target_format: str,
    options: Optional[Mapping[str, Any] | ConversionOptions] = None,
    progress_sink: Optional[ProgressSink] = None,
) -> ConversionResult:
    """Convert with the process-wide engine. See ConversionEngine.convert."""
    return await get_engine().convert(input_path, target_format, options, progress_sink)
