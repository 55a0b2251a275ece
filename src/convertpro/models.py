"""Request, option and result types for the conversion engine."""

import math
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from .logging_config import InvalidOptionError, get_logger

logger = get_logger("models")

RESIZE_MODES = ("fit", "cover")
QUALITY_LEVELS = ("high", "medium", "low")

# Front ends send camelCase keys
_OPTION_ALIASES = {
    "startTime": "start_time",
    "sampleRate": "sample_rate",
}

_BITRATE_REGEX = re.compile(r"^\d+(\.\d+)?[kKmM]?$")
_RESOLUTION_REGEX = re.compile(r"^(-?\d+)[xX:](-?\d+)$")


def _positive_int(name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidOptionError(f"Option '{name}' must be an integer, got {value!r}") from None
    if isinstance(value, float) and not value.is_integer():
        raise InvalidOptionError(f"Option '{name}' must be an integer, got {value!r}")
    if number <= 0:
        raise InvalidOptionError(f"Option '{name}' must be positive, got {value!r}")
    return number


def _seconds(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidOptionError(f"Option '{name}' must be a number of seconds, got {value!r}") from None
    if math.isnan(number) or math.isinf(number) or number < 0:
        raise InvalidOptionError(f"Option '{name}' must be a non-negative number, got {value!r}")
    return number


def _bitrate(text: str) -> Optional[str]:
    """Canonical FFmpeg bitrate (`192k`, `2M`), or None if ``text`` is not one.

    FFmpeg reads a lowercase `m` as milli, so the unit is normalised.
    """
    if not _BITRATE_REGEX.match(text):
        return None
    if text[-1] in "kK":
        return text[:-1] + "k"
    if text[-1] in "mM":
        return text[:-1] + "M"
    return text


def _quality(value: Any) -> int | str:
    if isinstance(value, bool):
        raise InvalidOptionError(f"Option 'quality' must be a number or level, got {value!r}")
    if isinstance(value, (int, float)):
        if not 0 <= value <= 100:
            raise InvalidOptionError(f"Option 'quality' must be between 0 and 100, got {value!r}")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return _quality(int(text))
        if text.lower() in QUALITY_LEVELS:
            return text.lower()
        bitrate = _bitrate(text)
        if bitrate is not None:
            return bitrate
    raise InvalidOptionError(
        f"Option 'quality' must be 0-100, one of {', '.join(QUALITY_LEVELS)} or a bitrate, "
        f"got {value!r}"
    )


@dataclass(frozen=True)
class ConversionOptions:
    """Validated conversion options. Every field is optional."""

    quality: Optional[int | str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    resize: str = "fit"
    resolution: Optional[str] = None
    fps: Optional[int] = None
    start_time: Optional[float] = None
    duration: Optional[float] = None
    bitrate: Optional[str] = None
    sample_rate: Optional[int] = None
    page: Optional[int] = None
    dpi: Optional[int] = None

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None) -> "ConversionOptions":
        """
        Build options from a caller-supplied map.

        Raises:
            InvalidOptionError: If a recognised option has an invalid value
        """
        if not options:
            return cls()

        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in options.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                logger.debug(f"Ignoring unknown option: {key}")
                continue
            if value is None:
                continue
            values[name] = value

        return cls(**cls._validate(values))

    @staticmethod
    def _validate(values: dict[str, Any]) -> dict[str, Any]:
        clean: dict[str, Any] = {}

        if "quality" in values:
            clean["quality"] = _quality(values["quality"])

        for name in ("width", "height", "fps", "sample_rate", "page", "dpi"):
            if name in values:
                clean[name] = _positive_int(name, values[name])

        for name in ("start_time", "duration"):
            if name in values:
                clean[name] = _seconds(name, values[name])

        if "resize" in values:
            resize = str(values["resize"]).lower()
            if resize not in RESIZE_MODES:
                raise InvalidOptionError(
                    f"Option 'resize' must be one of {', '.join(RESIZE_MODES)}, got {values['resize']!r}"
                )
            clean["resize"] = resize

        if "resolution" in values:
            match = _RESOLUTION_REGEX.match(str(values["resolution"]).strip())
            if not match:
                raise InvalidOptionError(
                    f"Option 'resolution' must look like 1280x720, got {values['resolution']!r}"
                )
            clean["resolution"] = f"{match.group(1)}x{match.group(2)}"

        if "bitrate" in values:
            bitrate = _bitrate(str(values["bitrate"]).strip())
            if bitrate is None:
                raise InvalidOptionError(
                    f"Option 'bitrate' must look like 192k, got {values['bitrate']!r}"
                )
            clean["bitrate"] = bitrate

        return clean

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


def normalize_format(token: str) -> str:
    """Lowercase a format token and drop any leading dot."""
    return token.strip().lower().lstrip(".")


@dataclass(frozen=True)
class ConversionRequest:
    """One conversion submitted by a caller."""

    input_path: Path
    target_format: str
    options: ConversionOptions = field(default_factory=ConversionOptions)

    @classmethod
    def create(
        cls,
        input_path: str | Path,
        target_format: str,
        options: Optional[Mapping[str, Any] | ConversionOptions] = None,
    ) -> "ConversionRequest":
        if not target_format or not isinstance(target_format, str):
            raise InvalidOptionError("Target format must be a non-empty string")

        if not isinstance(options, ConversionOptions):
            options = ConversionOptions.from_mapping(options)

        return cls(
            input_path=Path(input_path),
            target_format=normalize_format(target_format),
            options=options,
        )

    @property
    def input_format(self) -> str:
        return normalize_format(self.input_path.suffix)


def format_file_size(size: int) -> str:
    """Human readable size using 1024-based units."""
    if size <= 0:
        return "0 Bytes"

    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


@dataclass(frozen=True)
class ConversionResult:
    """Successful conversion outcome handed to the caller."""

    output_path: Path
    output_file_name: str
    input_format: str
    output_format: str
    output_size: int = 0
    input_size: int = 0

    @property
    def output_size_formatted(self) -> str:
        return format_file_size(self.output_size)

    @property
    def compression_ratio(self) -> Optional[float]:
        """Percent of the input size saved by the conversion."""
        if self.input_size <= 0:
            return None
        return round((self.input_size - self.output_size) / self.input_size * 100, 1)

    def to_dict(self) -> dict:
        return {
            "output_path": str(self.output_path),
            "output_file_name": self.output_file_name,
            "input_format": self.input_format,
            "output_format": self.output_format,
            "output_size": self.output_size,
            "output_size_formatted": self.output_size_formatted,
            "compression_ratio": self.compression_ratio,
        }
