"""Startup checks for the external tools the converters shell out to.

FFmpeg and a supported Python are hard requirements. RAR extraction goes
through rarfile, which needs one of its command line backends; without one
only the RAR path is lost, so it is reported but not fatal.
"""

import asyncio
import re
import shutil
import sys
from typing import Dict, Optional, Tuple

from .config import config
from .logging_config import DependencyError, get_logger

logger = get_logger("deps")

MIN_PYTHON = (3, 10)

# Backends rarfile can drive, in its own preference order
RAR_BACKENDS = ("unrar", "unar", "bsdtar", "7z")

_FFMPEG_VERSION_REGEX = re.compile(r"ffmpeg version (\S+)")

FFMPEG_INSTALL_HINT = (
    "FFmpeg not found. Install with:\n"
    "  Ubuntu/Debian: sudo apt install ffmpeg\n"
    "  Fedora/RHEL: sudo dnf install ffmpeg\n"
    "  macOS: brew install ffmpeg\n"
    "  Windows: Download from https://ffmpeg.org/download.html"
)


def parse_ffmpeg_version(output: str) -> Optional[str]:
    """Version token from ``ffmpeg -version`` output, e.g. ``6.1.1``."""
    match = _FFMPEG_VERSION_REGEX.search(output)
    return match.group(1) if match else None


async def check_ffmpeg(binary: Optional[str] = None) -> Tuple[bool, str]:
    """Check that the transcoder is on PATH and answers ``-version``.

    Returns:
        Tuple of (is_installed, version line or install hint)
    """
    binary = binary or config.ffmpeg_binary
    if not shutil.which(binary):
        return False, FFMPEG_INSTALL_HINT

    try:
        proc = await asyncio.create_subprocess_exec(
            binary,
            "-version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _ = await proc.communicate()
    except OSError as e:
        return False, f"{binary} found but could not be run: {e}"

    first_line = stdout.decode(errors="replace").split("\n")[0].strip()
    version = parse_ffmpeg_version(first_line)
    return True, f"FFmpeg {version}" if version else first_line


async def check_python_version() -> Tuple[bool, str]:
    """Check the running interpreter against MIN_PYTHON."""
    major, minor, micro = sys.version_info[:3]
    ok = (major, minor) >= MIN_PYTHON

    message = f"Python {major}.{minor}.{micro}"
    if not ok:
        message += f" - Requires Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+"
    return ok, message


def check_rar_backend() -> Tuple[bool, str]:
    """Find a command line tool rarfile can extract with."""
    for tool in RAR_BACKENDS:
        if shutil.which(tool):
            return True, f"RAR extraction via {tool}"
    return False, f"No RAR backend found (tried {', '.join(RAR_BACKENDS)}); RAR input disabled"


async def verify_dependencies() -> Dict[str, Dict]:
    """Run every check.

    Raises:
        DependencyError: If FFmpeg is missing or Python is too old

    Returns:
        Status per dependency: ffmpeg, python, rar
    """
    ffmpeg_ok, ffmpeg_msg = await check_ffmpeg()
    py_ok, py_msg = await check_python_version()
    rar_ok, rar_msg = check_rar_backend()

    results = {
        "ffmpeg": {"installed": ffmpeg_ok, "message": ffmpeg_msg},
        "python": {"compatible": py_ok, "message": py_msg},
        "rar": {"installed": rar_ok, "message": rar_msg},
    }

    if not ffmpeg_ok:
        raise DependencyError("FFmpeg required", technical_details=ffmpeg_msg)

    if not py_ok:
        raise DependencyError(f"Python version too old: {py_msg}")

    if not rar_ok:
        logger.warning(rar_msg)

    return results


async def get_dependency_summary() -> Dict[str, str]:
    """One status line per dependency, e.g. ``{"ffmpeg": "✓ Installed"}``."""
    results = await verify_dependencies()
    return {
        name: ("✓ " if info.get("installed", info.get("compatible")) else "✗ ") + info["message"]
        for name, info in results.items()
    }
