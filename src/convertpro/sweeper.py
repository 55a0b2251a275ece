"""Retention sweeper for temporary upload and output files."""

import asyncio
import logging
import shutil
import time
from datetime import timedelta
from pathlib import Path
from typing import Iterable, Optional

from .config import config

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(hours=2)


class RetentionSweeper:
    """Delete files older than a maximum age from a set of directories."""

    def __init__(
        self,
        directories: Optional[Iterable[str | Path]] = None,
        max_age: Optional[timedelta] = None,
    ):
        dirs = directories if directories is not None else config.sweep_directories
        self.directories = [Path(d) for d in dirs]
        self.max_age = (
            max_age if max_age is not None else timedelta(seconds=config.retention_max_age)
        )

    def sweep(
        self,
        directories: Optional[Iterable[str | Path]] = None,
        max_age: Optional[timedelta] = None,
        now: Optional[float] = None,
    ) -> dict[str, int]:
        """Delete aged entries from each directory.

        Directories are swept independently: an error in one is logged and
        the others are still processed.

        Returns:
            Mapping of directory path to number of entries removed.
        """
        dirs = [Path(d) for d in directories] if directories is not None else self.directories
        age = max_age if max_age is not None else self.max_age
        cutoff = (now if now is not None else time.time()) - age.total_seconds()

        report: dict[str, int] = {}
        for directory in dirs:
            try:
                report[str(directory)] = self._sweep_directory(directory, cutoff)
            except OSError as e:
                logger.error(f"Error cleaning directory {directory}: {e}")
                report[str(directory)] = 0

        total = sum(report.values())
        if total > 0:
            logger.info(f"Cleaned up {total} old temp files")
        return report

    def _sweep_directory(self, directory: Path, cutoff: float) -> int:
        if not directory.exists():
            logger.debug(f"Skipping missing directory: {directory}")
            return 0

        cleaned = 0
        for path in directory.iterdir():
            try:
                if path.lstat().st_mtime >= cutoff:
                    continue
                if path.is_dir() and not path.is_symlink():
                    shutil.rmtree(path)
                else:
                    path.unlink()
                cleaned += 1
                logger.info(f"Cleaned up old file: {path.name}")
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Failed to cleanup {path}: {e}")

        return cleaned

    async def run_periodically(
        self, interval: float, stop_event: Optional[asyncio.Event] = None
    ) -> None:
        """Sweep every ``interval`` seconds until ``stop_event`` is set or the task is cancelled."""
        stop_event = stop_event or asyncio.Event()
        loop = asyncio.get_running_loop()

        while not stop_event.is_set():
            try:
                await loop.run_in_executor(None, self.sweep)
            except Exception as e:
                logger.error(f"Cleanup error: {e}")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass


def sweep(
    directories: Optional[Iterable[str | Path]] = None,
    max_age: timedelta = DEFAULT_MAX_AGE,
) -> dict[str, int]:
    """Sweep the given (or configured) directories once."""
    return RetentionSweeper(directories, max_age).sweep()
