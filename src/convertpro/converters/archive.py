"""
Archive repackaging.

ZIP, RAR and 7z archives are rewritten as ZIP. Member contents are moved
across as-is; nothing inside the archive is inspected.
"""

import asyncio
import shutil
import zipfile
from pathlib import Path

from ..async_utils import TempFileManager, concurrency_limiter
from ..logging_config import ConversionError, get_logger
from ..models import ConversionOptions
from ..progress import ProgressTracker
from .base import Converter, remove_partial

logger = get_logger("converters.archive")

SUPPORTED_INPUT_FORMATS = ("zip", "rar", "7z")
SUPPORTED_OUTPUT_FORMATS = ("zip",)


def _zip_directory(directory: Path, output: Path) -> int:
    count = 0
    with zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED) as zip_ref:
        for item in sorted(directory.rglob("*")):
            if item.is_file():
                zip_ref.write(item, item.relative_to(directory).as_posix())
                count += 1
    return count


class ArchiveConverter(Converter):
    """Repackage supported archives into a ZIP container."""

    name = "archive"

    async def execute(
        self,
        source: Path,
        output: Path,
        options: ConversionOptions,
        progress: ProgressTracker,
    ) -> None:
        progress.update(20, "Reading archive...")

        async with concurrency_limiter:
            count = await asyncio.get_running_loop().run_in_executor(
                None, self._repackage_sync, source, output
            )

        progress.update(80, "Archive written")
        logger.info(f"Repackaged {count} entries: {source} -> {output}")

    def _repackage_sync(self, source: Path, output: Path) -> int:
        source_format = source.suffix.lower().lstrip(".")

        try:
            if source_format == "zip":
                return self._copy_zip(source, output)
            if source_format == "7z":
                return self._from_7z(source, output)
            if source_format == "rar":
                return self._from_rar(source, output)
        except ConversionError:
            remove_partial(output)
            raise
        except Exception as e:
            remove_partial(output)
            raise ConversionError(f"Failed to repackage {source.name}: {e}") from e

        raise ConversionError(f"Unsupported archive format: {source_format}")

    @staticmethod
    def _copy_zip(source: Path, output: Path) -> int:
        # Already the target container; only check it is a ZIP at all
        if not zipfile.is_zipfile(source):
            raise ConversionError(f"Not a valid ZIP archive: {source.name}")
        shutil.copyfile(source, output)
        with zipfile.ZipFile(output) as zip_ref:
            return len(zip_ref.namelist())

    @staticmethod
    def _from_7z(source: Path, output: Path) -> int:
        import py7zr

        with TempFileManager(prefix="convertpro_7z_") as temp:
            extract_dir = temp.create_dir()
            with py7zr.SevenZipFile(source, "r") as archive:
                archive.extractall(path=extract_dir)
            return _zip_directory(extract_dir, output)

    @staticmethod
    def _from_rar(source: Path, output: Path) -> int:
        import rarfile

        count = 0
        with rarfile.RarFile(source) as archive, zipfile.ZipFile(
            output, "w", zipfile.ZIP_DEFLATED
        ) as zip_ref:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                with archive.open(info) as member, zip_ref.open(info.filename, "w") as target:
                    shutil.copyfileobj(member, target)
                count += 1
        return count
