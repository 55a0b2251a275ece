"""
Progress reporting for conversions.

Provides the progress event type, a tracker that keeps the percent sequence
of one conversion non-decreasing, the FFmpeg stderr parser that turns
duration/time markers into percentages, and a channel for relaying events
to an async consumer such as an MCP context.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Callable, Optional, AsyncIterator

from .logging_config import get_logger

logger = get_logger("progress")

# FFmpeg percent band: 0-20 is setup, 95-100 is finalization
PROCESS_PROGRESS_SCALE = 80
PROCESS_PROGRESS_FLOOR = 20
PROCESS_PROGRESS_CEILING = 95

_DURATION_REGEX = re.compile(r"Duration: (\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?")
_TIME_REGEX = re.compile(r"time=\s*(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?")


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress update for a conversion."""

    percent: int
    message: str

    def to_dict(self) -> dict:
        return {"percent": self.percent, "message": self.message}


# Sinks are called synchronously on the stream-reading path and must be cheap.
ProgressSink = Callable[[ProgressEvent], None]


class ProgressTracker:
    """
    Guards a caller's progress sink for one conversion.

    Percent values are clamped to 0-99 and dropped when lower than the last
    emitted value, so the observed sequence never decreases. Only
    ``complete()`` emits 100.
    """

    def __init__(self, sink: Optional[ProgressSink] = None, label: str = ""):
        self._sink = sink
        self._label = label
        self._last: Optional[int] = None
        self._completed = False

    @property
    def last_percent(self) -> Optional[int]:
        """Last percent delivered to the sink."""
        return self._last

    @property
    def completed(self) -> bool:
        return self._completed

    def update(self, percent: float, message: str) -> bool:
        """
        Report intermediate progress.

        Returns:
            True if the event was delivered, False if it was dropped
        """
        if self._completed:
            return False

        value = max(0, min(99, int(round(percent))))
        if self._last is not None and value < self._last:
            return False

        self._emit(value, message)
        return True

    def complete(self, message: str = "Conversion completed!") -> None:
        """Report successful completion (100%)."""
        if self._completed:
            return
        self._emit(100, message)
        self._completed = True

    def _emit(self, percent: int, message: str) -> None:
        self._last = percent
        logger.debug(f"{self._label}{percent}% {message}")

        if self._sink is None:
            return

        try:
            self._sink(ProgressEvent(percent=percent, message=message))
        except Exception as e:
            logger.error(f"Progress callback error: {e}")


def _to_seconds(hours: str, minutes: str, seconds: str, fraction: Optional[str]) -> float:
    total = int(hours) * 3600 + int(minutes) * 60 + int(seconds)
    if fraction:
        total += int(fraction) / (10 ** len(fraction))
    return float(total)


class FFmpegProgressParser:
    """
    Turns FFmpeg stderr lines into a progress percent.

    FFmpeg prints the input duration once, then periodic status lines:
    ``Duration: 00:01:30.50, start: 0.000000, bitrate: 1205 kb/s``
    ``frame=  123 fps= 45 q=28.0 size= 1234kB time=00:00:05.00 bitrate=...``

    The first duration seen is cached. Each elapsed time marker maps
    ``elapsed / total`` into the 20-95 band.
    """

    def __init__(self, duration_hint: Optional[float] = None):
        self.total_seconds: Optional[float] = (
            duration_hint if duration_hint and duration_hint > 0 else None
        )

    def feed(self, line: str) -> Optional[int]:
        """
        Parse one stderr line.

        Returns:
            Percent in the 20-95 band, or None when the line carries no
            usable elapsed time
        """
        if self.total_seconds is None:
            duration_match = _DURATION_REGEX.search(line)
            if duration_match:
                total = _to_seconds(*duration_match.groups())
                if total > 0:
                    self.total_seconds = total
                return None

        time_match = _TIME_REGEX.search(line)
        if time_match is None or not self.total_seconds:
            return None

        elapsed = _to_seconds(*time_match.groups())
        return self.percent_for(elapsed / self.total_seconds)

    @staticmethod
    def percent_for(fraction: float) -> int:
        """Map a completion fraction onto the process band."""
        percent = round(fraction * PROCESS_PROGRESS_SCALE) + PROCESS_PROGRESS_FLOOR
        return max(PROCESS_PROGRESS_FLOOR, min(percent, PROCESS_PROGRESS_CEILING))


class ProgressChannel:
    """
    Unbounded queue bridging a synchronous sink to an async consumer.

    ``put`` never blocks, so it is safe to use as a sink. Consumers iterate
    with ``async for`` until ``close()`` is called.
    """

    _CLOSED = object()

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()

    def put(self, event: ProgressEvent) -> None:
        self._queue.put_nowait(event)

    def close(self) -> None:
        self._queue.put_nowait(self._CLOSED)

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item

