"""
Logging configuration and error hierarchy for the conversion engine.

This module provides:
- Structured logging setup with console and file handlers
- Custom exception hierarchy for different error types
- Error categorization (user vs technical errors)
"""

import logging
import sys
import traceback
from typing import Optional, Dict, Any


class ConverterError(Exception):
    """Base error for all converter operations."""

    def __init__(self, message: str, suggestion: Optional[str] = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message} (Suggestion: {self.suggestion})"
        return self.message


class UserError(ConverterError):
    """Error caused by user input/action."""

    pass


class SystemError(ConverterError):
    """Error caused by system/environment issues."""

    def __init__(
        self,
        message: str,
        technical_details: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        self.technical_details = technical_details
        super().__init__(message, suggestion)


class ConversionError(ConverterError):
    """Error during conversion process."""

    pass


class DependencyError(SystemError):
    """Error when required dependency is missing."""

    pass


class DiskSpaceError(SystemError):
    """Error when insufficient disk space."""

    pass


class FileOperationError(SystemError):
    """Error when a filesystem operation fails."""

    pass


class UnsupportedConversionError(UserError):
    """Error when no capability matches the requested format pair."""

    def __init__(self, input_format: str, output_format: str):
        self.input_format = input_format
        self.output_format = output_format
        super().__init__(
            f"Conversion from '{input_format}' to '{output_format}' is not supported",
            suggestion="Check list_supported_formats for the available conversion paths",
        )


class UnsupportedEmbedFormatError(UserError):
    """Error when an image cannot be embedded into a PDF page."""

    pass


class InvalidOptionError(UserError):
    """Error when a conversion option has an invalid value."""

    pass


class ProcessSpawnError(SystemError):
    """Error when the external transcoder cannot be launched."""

    pass


class ProcessExecutionError(ConversionError):
    """Error when the external transcoder exits with a non-zero status."""

    def __init__(self, returncode: int, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"FFmpeg process failed with code {returncode}",
            suggestion=f"Check if source file is valid. FFmpeg stderr: {stderr[-500:]}"
            if stderr
            else None,
        )


class ProcessTimeoutError(ConversionError):
    """Error when the external transcoder runs past the configured timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"FFmpeg process timed out after {timeout}s",
            suggestion="Try a lower quality preset or smaller file",
        )


class OutputVerificationError(ConversionError):
    """Error when a strategy reported success but produced no usable file."""

    pass


class ConversionFailed(ConverterError):
    """Wraps any failure that happened after a strategy was selected."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Conversion failed: {cause}")


def setup_logging(
    level: int | str = logging.INFO,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging configuration for the engine.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional path to log file
        format_string: Optional custom format string

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("convertpro")
    logger.setLevel(level)
    logger.handlers.clear()

    fmt = format_string or "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(fmt, datefmt=datefmt)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        name: Module name (e.g., 'engine', 'runner')

    Returns:
        Logger instance for the module
    """
    return logging.getLogger(f"convertpro.{name}")


def log_conversion_start(
    logger: logging.Logger, source_file: str, target_format: str, **kwargs: Any
) -> None:
    """Log the start of a conversion operation.

    Args:
        logger: Logger instance
        source_file: Path to source file
        target_format: Target format
        **kwargs: Additional metadata
    """
    logger.info("=" * 60)
    logger.info(f"Starting conversion: {source_file} -> {target_format}")
    for key, value in kwargs.items():
        logger.info(f"  {key}: {value}")
    logger.info("=" * 60)


def log_conversion_complete(
    logger: logging.Logger,
    success: bool,
    duration_seconds: float,
    output_file: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """Log the completion of a conversion operation.

    Args:
        logger: Logger instance
        success: Whether conversion succeeded
        duration_seconds: Duration in seconds
        output_file: Path to output file (if success)
        **kwargs: Additional metadata
    """
    status = "✓ SUCCESS" if success else "✗ FAILED"
    logger.info("=" * 60)
    logger.info(f"{status} - Conversion completed in {duration_seconds:.2f}s")
    if output_file:
        logger.info(f"  Output: {output_file}")
    for key, value in kwargs.items():
        logger.info(f"  {key}: {value}")
    logger.info("=" * 60)


def log_conversion_error(
    logger: logging.Logger, error: BaseException, include_traceback: bool = True
) -> None:
    """Log an error with appropriate formatting.

    Args:
        logger: Logger instance
        error: Exception to log
        include_traceback: Whether to include stack trace
    """
    logger.error(f"Error occurred: {error}")

    if isinstance(error, ConverterError) and error.suggestion:
        logger.info(f"Suggestion: {error.suggestion}")

    if isinstance(error, SystemError) and error.technical_details:
        logger.debug(f"Technical details: {error.technical_details}")

    if include_traceback:
        logger.debug("\n".join(traceback.format_exception(type(error), error, error.__traceback__)))


def error_summary(error: BaseException) -> Dict[str, Any]:
    """Describe an error for a calling layer that serializes responses."""
    cause = error.cause if isinstance(error, ConversionFailed) else error
    return {
        "error": type(cause).__name__,
        "message": str(error),
        "user_error": isinstance(cause, UserError),
    }
