"""Pytest configuration and fixtures for conversion engine tests."""

import stat
from pathlib import Path
from typing import Callable

import pytest

from src.convertpro.async_utils import ConcurrencyLimiter
from src.convertpro.converters.router import FormatRouter, build_capability_table
from src.convertpro.engine import ConversionEngine
from src.convertpro.file_manager import OutputManager
from src.convertpro.progress import ProgressEvent
from src.convertpro.runner import ProcessRunner


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Output directory that does not exist yet."""
    return tmp_path / "converted"


@pytest.fixture
def output_manager(output_dir: Path) -> OutputManager:
    return OutputManager(output_dir, min_disk_space_mb=0)


@pytest.fixture
def sample_jpg(tmp_path: Path) -> Path:
    """Create a 1600x1200 JPEG."""
    from PIL import Image

    path = tmp_path / "photo.jpg"
    Image.new("RGB", (1600, 1200), color=(200, 30, 30)).save(path, format="JPEG")
    return path


@pytest.fixture
def small_jpg(tmp_path: Path) -> Path:
    """Create a 400x300 JPEG."""
    from PIL import Image

    path = tmp_path / "small.jpg"
    Image.new("RGB", (400, 300), color=(30, 200, 30)).save(path, format="JPEG")
    return path


@pytest.fixture
def sample_png(tmp_path: Path) -> Path:
    """Create a 300x200 PNG with transparency."""
    from PIL import Image

    path = tmp_path / "logo.png"
    Image.new("RGBA", (300, 200), color=(0, 0, 255, 128)).save(path, format="PNG")
    return path


@pytest.fixture
def sample_gif(tmp_path: Path) -> Path:
    """Create a two frame animated GIF."""
    from PIL import Image

    path = tmp_path / "anim.gif"
    frames = [Image.new("P", (64, 64), color=i) for i in (1, 2)]
    frames[0].save(path, format="GIF", save_all=True, append_images=frames[1:], loop=0)
    return path


@pytest.fixture
def text_pdf(tmp_path: Path) -> Path:
    """Create a two page PDF with a text layer."""
    import fitz

    path = tmp_path / "report.pdf"
    doc = fitz.open()
    for text in ("Hello from page one", "Second page text"):
        page = doc.new_page(width=200, height=100)
        page.insert_text((10, 50), text)
    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture
def blank_pdf(tmp_path: Path) -> Path:
    """Create a PDF whose only page has no text."""
    import fitz

    path = tmp_path / "scan.pdf"
    doc = fitz.open()
    doc.new_page(width=200, height=100)
    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture
def sample_mp4(tmp_path: Path) -> Path:
    """Placeholder video file; only the fake FFmpeg reads it."""
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return path


@pytest.fixture
def fake_ffmpeg(tmp_path: Path) -> Callable[..., Path]:
    """Factory for a shell script that behaves like FFmpeg.

    The script reports a 10 second input, prints three time markers on
    stderr, writes to its last argument and exits with ``exit_code``.
    """

    def make(exit_code: int = 0, write_output: bool = True, sleep: float = 0) -> Path:
        lines = [
            "#!/bin/sh",
            "for last; do :; done",
            'echo "  Duration: 00:00:10.00, start: 0.000000, bitrate: 1205 kb/s" >&2',
            "printf 'frame=  10 fps=0.0 time=00:00:02.50 bitrate=N/A\\r' >&2",
            "printf 'frame=  20 fps=0.0 time=00:00:05.00 bitrate=N/A\\r' >&2",
            'echo "frame=  40 fps=0.0 time=00:00:10.00 bitrate=N/A" >&2',
        ]
        if write_output:
            lines.append('printf "fake media" > "$last"')
        if exit_code:
            lines.append('echo "Invalid data found when processing input" >&2')
        if sleep:
            lines.append(f"exec sleep {sleep}")
        lines.append(f"exit {exit_code}")

        script = tmp_path / f"ffmpeg_{exit_code}_{int(write_output)}_{sleep}.sh"
        script.write_text("\n".join(lines) + "\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return make


@pytest.fixture
def make_engine(output_manager: OutputManager) -> Callable[..., ConversionEngine]:
    """Factory for an engine writing to a temp dir, optionally using a fake FFmpeg."""

    def make(ffmpeg: Path | None = None, timeout: float | None = None) -> ConversionEngine:
        runner = ProcessRunner(
            binary=str(ffmpeg) if ffmpeg else None,
            limiter=ConcurrencyLimiter(4),
            timeout=timeout,
        )
        return ConversionEngine(
            router=FormatRouter(build_capability_table(runner)),
            output_manager=output_manager,
        )

    return make


@pytest.fixture
def events() -> list[ProgressEvent]:
    """List that a test can pass as a progress sink via ``events.append``."""
    return []
