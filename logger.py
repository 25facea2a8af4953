"""
Logging Module for RICE+AIR Carbon Tax Optimization.

Provides structured, level-filtered logging for the optimization pipeline with
optional file output and formatted section headers for result summaries.

Usage:
    from logger import get_logger, LogLevel

    logger = get_logger(__name__, level=LogLevel.INFO)
    logger.info("Starting optimization")
    logger.debug("Objective evaluation 12: welfare=...")
    logger.warning("Model run returned non-finite welfare")
    logger.exception("Optimization failed")
"""

import sys
import traceback
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Optional, TextIO

from config import DISPLAY_WIDTH


class LogLevel(IntEnum):
    """Log levels from least to most verbose."""
    ERROR = 0
    WARNING = 1
    INFO = 2
    DEBUG = 3


class Logger:
    """
    Logger with level-based filtering and optional file output.

    Every line carries a timestamp, the level and the logger name so that
    long optimization runs can be followed from a log file.
    """

    def __init__(
        self,
        name: str,
        level: LogLevel = LogLevel.INFO,
        file_path: Optional[Path] = None,
        stream: Optional[TextIO] = None
    ):
        """
        Initialize logger.

        Args:
            name: Logger name (typically module name)
            level: Minimum log level to display
            file_path: Optional file path for log output
            stream: Output stream (default: sys.stdout at write time)
        """
        self.name = name
        self.level = level
        self.stream = stream
        self.file_path: Optional[Path] = None
        self._file_handle: Optional[TextIO] = None

        if file_path:
            self.attach_file(file_path)

    def attach_file(self, file_path: Optional[Path]) -> None:
        """
        Send log output to a file in addition to the stream.

        Args:
            file_path: Log file path (None detaches any open file)
        """
        self.close()
        self.file_path = file_path
        if file_path is None:
            return
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = open(file_path, "a", encoding="utf-8")
        except OSError as e:
            self._file_handle = None
            self._write(LogLevel.ERROR, f"Failed to open log file {file_path}: {e}")

    def _format_message(self, level: LogLevel, message: str) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        return f"[{timestamp}] {level.name.ljust(7)} [{self.name}] {message}"

    def _write(self, level: LogLevel, message: str, force: bool = False) -> None:
        """
        Write message to output if level is sufficient.

        Args:
            level: Log level of message
            message: Message to write
            force: Write regardless of the configured level
        """
        if not force and level > self.level:
            return

        formatted = self._format_message(level, message)
        print(formatted, file=self.stream or sys.stdout)

        if self._file_handle:
            try:
                self._file_handle.write(formatted + "\n")
                self._file_handle.flush()
            except OSError as e:
                print(f"Error writing to log file: {e}", file=sys.stderr)

    def debug(self, message: str) -> None:
        """Log debug message."""
        self._write(LogLevel.DEBUG, message)

    def info(self, message: str) -> None:
        """Log info message."""
        self._write(LogLevel.INFO, message)

    def warning(self, message: str) -> None:
        """Log warning message."""
        self._write(LogLevel.WARNING, message)

    def error(self, message: str) -> None:
        """Log error message."""
        self._write(LogLevel.ERROR, message)

    def exception(self, message: str) -> None:
        """
        Log error message followed by the traceback of the active exception.

        Intended for use inside an ``except`` block right before re-raising.
        """
        self._write(LogLevel.ERROR, message)
        exc_type, _, _ = sys.exc_info()
        if exc_type is not None:
            for line in traceback.format_exc().rstrip().splitlines():
                self._write(LogLevel.ERROR, line)

    def section(self, title: str, width: int = DISPLAY_WIDTH) -> None:
        """
        Log a section header (always shown, regardless of level).

        Args:
            title: Section title
            width: Width of separator line
        """
        separator = "=" * width
        self._write(LogLevel.INFO, separator, force=True)
        self._write(LogLevel.INFO, title.center(width), force=True)
        self._write(LogLevel.INFO, separator, force=True)

    def value(self, label: str, value: object, label_width: int = 36) -> None:
        """
        Log an aligned ``label: value`` line for result summaries.

        Args:
            label: Left-hand label
            value: Already formatted value (str) or any printable object
            label_width: Column width reserved for the label
        """
        self.info(f"  {(label + ':').ljust(label_width)} {value}")

    def close(self) -> None:
        """Close log file if open."""
        if self._file_handle:
            try:
                self._file_handle.close()
            except OSError:
                pass
            finally:
                self._file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# Global logger registry
_loggers: dict[str, Logger] = {}
_global_level: LogLevel = LogLevel.INFO
_global_log_file: Optional[Path] = None


def get_logger(
    name: str,
    level: Optional[LogLevel] = None,
    file_path: Optional[Path] = None
) -> Logger:
    """
    Get or create a logger instance.

    Args:
        name: Logger name (typically __name__)
        level: Log level (uses global if not specified)
        file_path: Optional log file path (uses global if not specified)

    Returns:
        Logger instance
    """
    if name not in _loggers:
        actual_level = level if level is not None else _global_level
        actual_file = file_path if file_path is not None else _global_log_file
        _loggers[name] = Logger(name, actual_level, actual_file)

    return _loggers[name]


def set_global_level(level: LogLevel) -> None:
    """Set log level for all existing and future loggers."""
    global _global_level
    _global_level = level

    for logger in _loggers.values():
        logger.level = level


def configure_logging(
    level: LogLevel = LogLevel.INFO,
    file_path: Optional[Path] = None,
    verbose: bool = False
) -> None:
    """
    Configure global logging settings.

    Args:
        level: Default log level
        file_path: Optional log file path shared by all loggers
        verbose: If True, set level to DEBUG (per-evaluation traces)
    """
    global _global_log_file
    set_global_level(LogLevel.DEBUG if verbose else level)

    _global_log_file = file_path
    for logger in _loggers.values():
        logger.attach_file(file_path)


def close_all_loggers() -> None:
    """Close all logger file handles."""
    for logger in _loggers.values():
        logger.close()
