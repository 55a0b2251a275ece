"""MCP Server for the Convert Pro conversion engine.

This module exposes the engine through FastMCP: conversions with progress
reporting, capability discovery and temp file cleanup. It also runs the
retention sweeper in the background for the lifetime of the server.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from mcp.server.fastmcp import Context, FastMCP

from .config import config
from .deps import verify_dependencies
from .engine import get_engine
from .logging_config import (
    ConverterError,
    DependencyError,
    error_summary,
    get_logger,
    setup_logging,
)
from .progress import ProgressChannel
from .sweeper import RetentionSweeper

logger = get_logger("server")


class GracefulShutdown:
    """Track in-flight conversions so shutdown can drain or cancel them."""

    def __init__(self):
        self._shutdown = False
        self._tasks: set[asyncio.Task] = set()

    def is_shutting_down(self) -> bool:
        return self._shutdown

    def initiate_shutdown(self):
        """Stop accepting conversions. Safe to call more than once."""
        if not self._shutdown:
            self._shutdown = True
            logger.info(f"Shutdown signal received, {len(self._tasks)} conversions in flight")

    def register_task(self, task: asyncio.Task):
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_for_tasks(self, timeout: float = 10.0):
        """Wait for in-flight conversions, cancelling any still running at the timeout.

        Cancelled conversions remove their partial output.
        """
        if not self._tasks:
            return

        pending = set(self._tasks)
        logger.info(f"Waiting up to {timeout}s for {len(pending)} conversions...")
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        if not still_running:
            logger.info("All conversions finished")
            return

        logger.warning(f"Cancelling {len(still_running)} conversions after {timeout}s")
        for task in still_running:
            task.cancel()
        await asyncio.gather(*still_running, return_exceptions=True)


shutdown_handler = GracefulShutdown()


@asynccontextmanager
async def server_lifespan(app: FastMCP):
    """Manage server startup and shutdown.

    This context manager handles:
    - Dependency verification at startup
    - The periodic retention sweep
    - Graceful shutdown of running conversions
    """
    stop_sweeper = asyncio.Event()
    sweeper_task: Optional[asyncio.Task] = None

    try:
        logger.info("Starting Convert Pro MCP Server...")
        logger.info("Verifying system dependencies...")
        try:
            deps = await verify_dependencies()
            logger.info(
                f"Dependencies verified: {deps['python']['message']}, "
                f"FFmpeg {'✓' if deps['ffmpeg']['installed'] else '✗'}"
            )
        except DependencyError as e:
            logger.error(f"Dependency check failed: {e}")
            raise

        sweeper = RetentionSweeper()
        sweeper_task = asyncio.create_task(
            sweeper.run_periodically(config.sweep_interval, stop_sweeper)
        )
        logger.info(
            f"Retention sweeper started: every {config.sweep_interval}s, "
            f"max age {config.retention_max_age}s"
        )

        yield

    finally:
        logger.info("Shutting down server...")
        shutdown_handler.initiate_shutdown()
        await shutdown_handler.wait_for_tasks()

        stop_sweeper.set()
        if sweeper_task is not None:
            await asyncio.gather(sweeper_task, return_exceptions=True)

        logger.info("Server shutdown complete")


mcp = FastMCP(
    name="Convert Pro",
    instructions=(
        "MCP server for media file conversion. "
        "Supports images, video, audio, PDF documents and archives. "
        "Converted files are written to the server's output directory."
    ),
    lifespan=server_lifespan,
)


async def _relay_progress(channel: ProgressChannel, ctx: Context) -> None:
    async for event in channel:
        try:
            await ctx.report_progress(progress=event.percent, total=100, message=event.message)
        except Exception as e:
            logger.debug(f"MCP progress report error: {e}")


@mcp.tool()
async def convert_file(
    source: str,
    target_format: str,
    options: Optional[dict[str, Any]] = None,
    ctx: Context = None,
) -> dict[str, Any]:
    """Convert a file to the target format.

    Supported paths:
    - Images: JPG, PNG, GIF, BMP, WebP, TIFF -> JPG, PNG, WebP, GIF, BMP, PDF
    - PDF -> JPG, PNG, TXT
    - Video: MP4, AVI, MOV, MKV, WebM, FLV, 3GP -> MP4, AVI, MOV, WebM, GIF, MP3, WAV, AAC
    - Audio: MP3, WAV, FLAC, M4A, AAC, OGG, WMA -> MP3, WAV, FLAC, M4A, AAC, OGG
    - Archives: ZIP, RAR, 7Z -> ZIP

    Args:
        source: Path to source file
        target_format: Target format (e.g., 'png', 'mp4', 'gif', 'mp3', 'txt')
        options: Optional options: quality, width, height, resize, resolution,
            fps, startTime, duration, bitrate, sampleRate, page, dpi

    Returns:
        dict with:
            - status: 'success' or 'error'
            - output_path, output_file_name, input_format, output_format,
              output_size, output_size_formatted, compression_ratio (on success)
            - message: Status message or error description
    """
    logger.info(f"Conversion requested: {source} -> {target_format}")

    if shutdown_handler.is_shutting_down():
        return {
            "status": "error",
            "message": "Server is shutting down, new conversions not accepted",
            "format": target_format,
        }

    channel: Optional[ProgressChannel] = None
    relay: Optional[asyncio.Task] = None
    if ctx is not None:
        channel = ProgressChannel()
        relay = asyncio.create_task(_relay_progress(channel, ctx))

    task = asyncio.create_task(
        get_engine().convert(
            source, target_format, options, channel.put if channel is not None else None
        )
    )
    shutdown_handler.register_task(task)

    try:
        result = await task
    except ConverterError as e:
        logger.error(f"Conversion failed: {e}")
        return {"status": "error", "format": target_format, **error_summary(e)}
    finally:
        if channel is not None:
            channel.close()
            await relay

    return {
        "status": "success",
        "message": f"Successfully converted {Path(source).name} to {result.output_format}",
        **result.to_dict(),
    }


@mcp.tool()
async def list_supported_formats() -> list[dict]:
    """List every supported conversion path in routing order.

    Returns:
        list of dicts with strategy name, input formats and output formats
    """
    return get_engine().router.get_supported_conversions()


@mcp.tool()
async def get_conversion_info(source_format: str, target_format: str) -> dict[str, Any]:
    """Get information about a specific conversion path.

    Args:
        source_format: Source format (e.g., 'jpg', 'mp4')
        target_format: Target format (e.g., 'png', 'webm')

    Returns:
        dict with:
            - supported: Whether this conversion is supported
            - strategy: Strategy that would handle it
            - targets: Every format reachable from the source format
    """
    router = get_engine().router
    source_format = source_format.lower()
    target_format = target_format.lower()

    is_supported = router.is_conversion_supported(source_format, target_format)
    strategy = router.resolve(source_format, target_format).name if is_supported else None

    return {
        "supported": is_supported,
        "strategy": strategy,
        "targets": router.supported_targets(source_format),
        "notes": (
            f"Handled by the {strategy} converter"
            if is_supported
            else f"Conversion not supported from {source_format} to {target_format}"
        ),
    }


@mcp.tool()
async def cleanup_temp_files(max_age_minutes: Optional[int] = None) -> dict[str, int]:
    """Delete temporary uploads and converted files older than the retention age.

    Args:
        max_age_minutes: Optional override of the configured retention age

    Returns:
        Number of entries removed per directory
    """
    max_age = timedelta(minutes=max_age_minutes) if max_age_minutes is not None else None
    sweeper = RetentionSweeper(max_age=max_age)
    return await asyncio.get_running_loop().run_in_executor(None, sweeper.sweep)


def main():
    """Main entry point for the MCP server.

    Note: mcp.run() manages its own event loop via anyio, so we call it
    synchronously without wrapping in asyncio.run().
    """
    setup_logging(config.log_level, str(config.log_file) if config.log_file else None)
    try:
        logger.info("Starting server with stdio transport...")
        mcp.run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        shutdown_handler.initiate_shutdown()
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        raise
    finally:
        logger.info("Server stopped")


if __name__ == "__main__":
    main()
