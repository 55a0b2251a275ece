"""Configuration management for the conversion engine."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class ConverterConfig:
    """Configuration settings for the engine."""

    temp_dir: Path = field(default_factory=lambda: Path.cwd() / "temp")
    upload_dir: Optional[Path] = None
    output_dir: Optional[Path] = None

    max_concurrent: int = field(default_factory=lambda: min(4, os.cpu_count() or 4))
    min_disk_space_mb: int = 100

    ffmpeg_binary: str = "ffmpeg"
    process_timeout: Optional[float] = None

    retention_max_age: int = 2 * 60 * 60
    sweep_interval: int = 60 * 60

    log_level: str = "INFO"
    log_file: Optional[Path] = None

    def __post_init__(self):
        if isinstance(self.temp_dir, str):
            self.temp_dir = Path(self.temp_dir)

        if self.upload_dir is None:
            self.upload_dir = self.temp_dir / "uploads"
        elif isinstance(self.upload_dir, str):
            self.upload_dir = Path(self.upload_dir)

        if self.output_dir is None:
            self.output_dir = self.temp_dir / "converted"
        elif isinstance(self.output_dir, str):
            self.output_dir = Path(self.output_dir)

        if isinstance(self.log_file, str):
            self.log_file = Path(self.log_file)

    @classmethod
    def from_env(cls) -> "ConverterConfig":
        """Load configuration from environment variables."""
        return cls(
            temp_dir=Path(os.environ.get("CONVERTPRO_TEMP_DIR", Path.cwd() / "temp")),
            upload_dir=Path(p) if (p := os.environ.get("CONVERTPRO_UPLOAD_DIR")) else None,
            output_dir=Path(p) if (p := os.environ.get("CONVERTPRO_OUTPUT_DIR")) else None,
            max_concurrent=int(
                os.environ.get("CONVERTPRO_MAX_CONCURRENT", min(4, os.cpu_count() or 4))
            ),
            min_disk_space_mb=int(os.environ.get("CONVERTPRO_MIN_DISK_SPACE_MB", 100)),
            ffmpeg_binary=os.environ.get("CONVERTPRO_FFMPEG_BINARY", "ffmpeg"),
            process_timeout=float(t) if (t := os.environ.get("CONVERTPRO_PROCESS_TIMEOUT")) else None,
            retention_max_age=int(os.environ.get("CONVERTPRO_RETENTION_MAX_AGE", 2 * 60 * 60)),
            sweep_interval=int(os.environ.get("CONVERTPRO_SWEEP_INTERVAL", 60 * 60)),
            log_level=os.environ.get("CONVERTPRO_LOG_LEVEL", "INFO"),
            log_file=Path(p) if (p := os.environ.get("CONVERTPRO_LOG_FILE")) else None,
        )

    @property
    def sweep_directories(self) -> list[Path]:
        """Directories the retention sweeper is responsible for."""
        return [self.upload_dir, self.output_dir]


config = ConverterConfig.from_env()
