"""
FFmpeg process runner.

Spawns the transcoder, consumes its stderr incrementally and converts
duration/time markers into progress events. A failed process is terminal
for the conversion; nothing here retries.
"""

import asyncio
import codecs
import re
from collections import deque
from dataclasses import dataclass
from typing import Optional, Sequence

from .async_utils import ConcurrencyLimiter, concurrency_limiter
from .config import config
from .logging_config import (
    ProcessExecutionError,
    ProcessSpawnError,
    ProcessTimeoutError,
    get_logger,
)
from .progress import FFmpegProgressParser, ProgressTracker

logger = get_logger("runner")

_LINE_SPLIT = re.compile(r"[\r\n]")
_STDERR_TAIL_LINES = 20
_READ_CHUNK = 4096


@dataclass(frozen=True)
class ProcessInvocation:
    """A single external process launch."""

    binary: str
    args: tuple[str, ...]

    @property
    def command(self) -> list[str]:
        return [self.binary, *self.args]

    def __str__(self) -> str:
        return " ".join(self.command)


class ProcessRunner:
    """Run FFmpeg with progress reporting parsed from stderr."""

    def __init__(
        self,
        binary: Optional[str] = None,
        limiter: Optional[ConcurrencyLimiter] = None,
        timeout: Optional[float] = None,
    ):
        self.binary = binary or config.ffmpeg_binary
        self.limiter = limiter or concurrency_limiter
        self.timeout = timeout if timeout is not None else config.process_timeout

    async def run(
        self,
        args: Sequence[str],
        progress: Optional[ProgressTracker] = None,
        duration_hint: Optional[float] = None,
    ) -> None:
        """
        Run the transcoder to completion.

        Args:
            args: Arguments passed after the binary
            progress: Optional tracker receiving 20-95% updates
            duration_hint: Known output length in seconds; overrides the
                duration FFmpeg reports for the input

        Raises:
            ProcessSpawnError: If the binary cannot be launched
            ProcessExecutionError: If the process exits non-zero
            ProcessTimeoutError: If the configured timeout elapses
        """
        invocation = ProcessInvocation(self.binary, tuple(str(a) for a in args))

        async with self.limiter:
            if progress is not None:
                progress.update(20, "Starting FFmpeg process...")

            logger.debug(f"Running: {invocation}")
            try:
                process = await asyncio.create_subprocess_exec(
                    *invocation.command,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise ProcessSpawnError(
                    f"Failed to launch {invocation.binary}: {e}",
                    technical_details=str(invocation),
                    suggestion="Install FFmpeg or set CONVERTPRO_FFMPEG_BINARY",
                ) from e

            parser = FFmpegProgressParser(duration_hint)
            tail: deque[str] = deque(maxlen=_STDERR_TAIL_LINES)

            try:
                if self.timeout:
                    await asyncio.wait_for(
                        self._consume(process, parser, tail, progress), timeout=self.timeout
                    )
                else:
                    await self._consume(process, parser, tail, progress)
                returncode = await process.wait()
            except asyncio.TimeoutError:
                await self._kill(process)
                raise ProcessTimeoutError(self.timeout) from None
            except asyncio.CancelledError:
                await self._kill(process)
                raise

        if returncode != 0:
            raise ProcessExecutionError(returncode, "\n".join(tail))

        logger.debug(f"{invocation.binary} finished successfully")

    async def _consume(
        self,
        process: asyncio.subprocess.Process,
        parser: FFmpegProgressParser,
        tail: deque,
        progress: Optional[ProgressTracker],
    ) -> None:
        """Read stderr until EOF, feeding every complete line to the parser."""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buffer = ""
        while True:
            chunk = await process.stderr.read(_READ_CHUNK)
            if not chunk:
                break

            buffer += decoder.decode(chunk)
            *lines, buffer = _LINE_SPLIT.split(buffer)
            for line in lines:
                self._handle_line(line, parser, tail, progress)

        buffer += decoder.decode(b"", final=True)
        for line in _LINE_SPLIT.split(buffer):
            self._handle_line(line, parser, tail, progress)

    @staticmethod
    def _handle_line(
        line: str,
        parser: FFmpegProgressParser,
        tail: deque,
        progress: Optional[ProgressTracker],
    ) -> None:
        line = line.strip()
        if not line:
            return

        tail.append(line)
        percent = parser.feed(line)
        if percent is not None and progress is not None:
            progress.update(percent, f"Processing... {percent}%")

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            pass
        try:
            await asyncio.wait_for(process.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning(f"Process did not terminate after kill, PID: {process.pid}")
