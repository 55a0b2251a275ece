"""Output file management: path generation, verification and cleanup.

This module provides the OutputManager, which owns a conversion's output
file from the moment its path is handed out until it has been verified.
Failed conversions hand the path back through ``discard``.
"""

import logging
import secrets
import time
from pathlib import Path
from typing import Optional

import psutil

from .logging_config import (
    DiskSpaceError,
    FileOperationError,
    OutputVerificationError,
)

logger = logging.getLogger(__name__)

_MAX_NAME_ATTEMPTS = 100


class OutputManager:
    """Hands out collision-resistant output paths and finalizes or discards them."""

    def __init__(self, output_dir: str | Path, min_disk_space_mb: int = 100):
        """Initialize OutputManager.

        Args:
            output_dir: Directory converted files are written to.
            min_disk_space_mb: Minimum free space required before a new path
                is handed out (0 disables the check).
        """
        self.output_dir = Path(output_dir)
        self.min_disk_space_mb = min_disk_space_mb

    def ensure_output_dir(self) -> Path:
        """Create the output directory if it does not exist."""
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileOperationError(
                f"Failed to create output directory {self.output_dir}: {e}"
            ) from e
        return self.output_dir

    def prepare_path(self, extension: str) -> Path:
        """Generate a fresh output path for the given extension.

        The file name is ``<epoch millis>_<random hex>.<extension>``.

        Raises:
            FileOperationError: If the directory cannot be created or no
                unused name is found.
            DiskSpaceError: If free space is below the configured minimum.
        """
        extension = extension.strip().lower().lstrip(".")
        if not extension:
            raise FileOperationError("Output extension cannot be empty")

        out_dir = self.ensure_output_dir()
        if self.min_disk_space_mb:
            self.check_disk_space(out_dir)

        for _ in range(_MAX_NAME_ATTEMPTS):
            name = f"{int(time.time() * 1000)}_{secrets.token_hex(8)}.{extension}"
            output_path = out_dir / name
            if not output_path.exists():
                logger.debug(f"Prepared output path: {output_path}")
                return output_path

        raise FileOperationError(f"Cannot find an unused output path in {out_dir}")

    def check_disk_space(self, path: str | Path, required_mb: Optional[int] = None) -> bool:
        """Check that the filesystem holding ``path`` has enough free space.

        Raises:
            DiskSpaceError: If there is not enough free space.
            FileOperationError: If disk usage cannot be read.
        """
        check_path = Path(path)
        if check_path.is_file():
            check_path = check_path.parent

        required = required_mb or self.min_disk_space_mb

        try:
            free_mb = psutil.disk_usage(str(check_path)).free / (1024 * 1024)
        except OSError as e:
            raise FileOperationError(f"Failed to check disk space for {check_path}: {e}") from e

        if free_mb < required:
            raise DiskSpaceError(
                f"Insufficient disk space: {free_mb:.1f}MB free, {required}MB required",
                suggestion="Free up space or run the retention sweeper",
            )

        return True

    def verify(self, path: str | Path) -> Path:
        """Confirm a strategy actually produced a usable file.

        Raises:
            OutputVerificationError: If the file is missing, not a regular
                file, or empty.
        """
        path = Path(path)

        if not path.is_file():
            raise OutputVerificationError(f"Output file was not created: {path.name}")

        if path.stat().st_size == 0:
            raise OutputVerificationError(f"Output file is empty: {path.name}")

        logger.debug(f"Verified output: {path}")
        return path

    def discard(self, path: Optional[str | Path]) -> bool:
        """Delete a partial artifact. Never raises.

        Returns:
            True if a file was removed.
        """
        if path is None:
            return False

        path = Path(path)
        try:
            if path.exists():
                path.unlink()
                logger.info(f"Removed partial output: {path}")
                return True
        except OSError as e:
            logger.warning(f"Failed to remove partial output {path}: {e}")
        return False
