"""Admission control for conversions and scratch directories for extraction."""

import asyncio
import logging
import shutil
import tempfile
import weakref
from pathlib import Path
from typing import Optional

from .config import config

logger = logging.getLogger(__name__)


class ConcurrencyLimiter:
    """Caps how many conversions do heavy work at once.

    One semaphore is kept per event loop, so a limiter created at import
    time can be shared by test loops and the server loop alike.
    """

    def __init__(self, max_concurrent: int = 4):
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")
        self._max_concurrent = max_concurrent
        self._semaphores: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Semaphore]" = (
            weakref.WeakKeyDictionary()
        )

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    async def acquire(self) -> "ConcurrencyLimiter":
        sem = self._semaphore()
        if sem.locked():
            logger.debug(f"All {self._max_concurrent} conversion slots busy, waiting")
        await sem.acquire()
        return self

    def release(self) -> None:
        self._semaphore().release()

    async def __aenter__(self):
        return await self.acquire()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.release()

    def _semaphore(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        sem = self._semaphores.get(loop)
        if sem is None:
            sem = self._semaphores[loop] = asyncio.Semaphore(self._max_concurrent)
        return sem


class TempFileManager:
    """Scratch directories removed, with their contents, on exit."""

    def __init__(self, prefix: str = "convertpro_", dir_path: Optional[str | Path] = None):
        self._prefix = prefix
        self._parent = str(dir_path) if dir_path else None
        self._dirs: list[Path] = []

    def create_dir(self) -> Path:
        path = Path(tempfile.mkdtemp(prefix=self._prefix, dir=self._parent))
        self._dirs.append(path)
        return path

    def cleanup(self) -> None:
        while self._dirs:
            path = self._dirs.pop()
            try:
                shutil.rmtree(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Failed to remove scratch dir {path}: {e}")

    def __enter__(self) -> "TempFileManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()
        return False


concurrency_limiter = ConcurrencyLimiter(config.max_concurrent)
