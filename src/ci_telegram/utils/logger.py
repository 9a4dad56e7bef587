"""CI Telegram Notifier — Logging Setup.

Provides a centralized logging configuration with colored console output
and an optional rotating file handler. All modules should use get_logger()
to obtain a named logger instance.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

# ── Constants ─────────────────────────────────────────────
MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5
_FORMAT = "%(asctime)s │ %(levelname)s │ %(name)s │ %(message)s"
_FILE_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# ── ANSI Color Codes ─────────────────────────────────────
COLORS = {
    "DEBUG": "\033[36m",     # Cyan
    "INFO": "\033[32m",      # Green
    "WARNING": "\033[33m",   # Yellow
    "ERROR": "\033[31m",     # Red
    "CRITICAL": "\033[41m",  # Red background
}
RESET = "\033[0m"

_console_handler: Optional[logging.Handler] = None
_file_handler: Optional[logging.Handler] = None


class ColoredFormatter(logging.Formatter):
    """Formatter that adds ANSI colors to console log output.

    The record is copied before coloring so other handlers on the same
    logger still see the plain level name.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with a colored level name.

        Args:
            record: The log record to format.

        Returns:
            Formatted log string with ANSI color codes.
        """
        colored = logging.makeLogRecord(record.__dict__)
        color = COLORS.get(record.levelname, "")
        colored.levelname = f"{color}{record.levelname:<8}{RESET}"
        return super().format(colored)


def _setup_logging() -> None:
    """Attach the console handler to the root logger once.

    Idempotent — calling it again after the first initialization
    has no effect.
    """
    global _console_handler
    if _console_handler is not None:
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # ── Console Handler (INFO) ───────────────────────────
    _console_handler = logging.StreamHandler(sys.stderr)
    _console_handler.setLevel(logging.INFO)
    _console_handler.setFormatter(ColoredFormatter(fmt=_FORMAT, datefmt=_DATEFMT))
    root_logger.addHandler(_console_handler)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """Apply the configured console level and optional log file.

    Args:
        level: Console log level name (e.g. "INFO", "DEBUG").
        log_file: Path of a rotating log file. None disables file logging.

    Raises:
        ValueError: If the level name is unknown.
    """
    global _file_handler
    _setup_logging()

    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level!r}")
    if _console_handler is not None:
        _console_handler.setLevel(numeric)

    if log_file is None or _file_handler is not None:
        return

    # ── Rotating File Handler (DEBUG) ────────────────────
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    _file_handler = RotatingFileHandler(
        filename=str(path),
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    _file_handler.setLevel(logging.DEBUG)
    _file_handler.setFormatter(logging.Formatter(fmt=_FILE_FORMAT, datefmt=_DATEFMT))
    logging.getLogger().addHandler(_file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger instance with the global configuration applied.

    All application modules should use this function instead of
    calling logging.getLogger() directly.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        A configured logging.Logger instance.
    """
    _setup_logging()
    return logging.getLogger(name)
