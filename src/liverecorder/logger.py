"""
Logging module for Live Recorder.
Provides structured logging with file rotation and colored console output.
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


ROOT_LOGGER = 'live_recorder'


# ANSI color codes for console output
class Colors:
    RESET = "\033[0m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.GRAY,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.MAGENTA,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')

        # Recording name and batch number if present, e.g. [show #3]
        tag = record_tag(record)
        tag_str = f"{Colors.CYAN}[{tag}]{Colors.RESET} " if tag else ""

        level_str = f"{color}{record.levelname:8}{Colors.RESET}"
        message = f"{Colors.GRAY}{timestamp}{Colors.RESET} {level_str} {tag_str}{record.getMessage()}"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class FileFormatter(logging.Formatter):
    """Plain formatter for file output, one column each for recording and batch."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')
        recording = getattr(record, 'recording', None) or '-'
        batch = getattr(record, 'batch', None)
        batch_str = f"#{batch:03d}" if isinstance(batch, int) else '-'

        message = (
            f"{timestamp} | {record.levelname:8} | {recording:24} | {batch_str:>4} | "
            f"{record.name.rsplit('.', 1)[-1]:9} | {record.getMessage()}"
        )

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


def record_tag(record: logging.LogRecord) -> str:
    """Short ``recording #batch`` tag for a record, empty when neither is set."""
    recording = getattr(record, 'recording', None)
    batch = getattr(record, 'batch', None)
    parts = []
    if recording:
        parts.append(str(recording))
    if isinstance(batch, int):
        parts.append(f"#{batch}")
    return " ".join(parts)


class SessionLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that tags records with the recording's base name.

    Per-call ``extra`` (for example ``{'batch': 3}``) is merged with the
    recording tag instead of replacing it.
    """

    def __init__(self, logger: logging.Logger, recording: str):
        super().__init__(logger, {'recording': recording})

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **(kwargs.get('extra') or {})}
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    max_size_mb: int = 10,
    backup_count: int = 5
) -> logging.Logger:
    """
    Set up the main application logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_file: Path to log file. If None, logs only to console.
        max_size_mb: Maximum log file size before rotation.
        backup_count: Number of backup log files to keep.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter())
    console_handler.setLevel(logging.DEBUG)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(FileFormatter())
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get the application logger.

    Args:
        name: Optional name for child logger.

    Returns:
        Logger instance.
    """
    if name:
        return logging.getLogger(f'{ROOT_LOGGER}.{name}')
    return logging.getLogger(ROOT_LOGGER)


def get_session_logger(recording: str) -> SessionLoggerAdapter:
    """
    Get a logger adapter for a specific recording.

    Args:
        recording: Base name of the recording.

    Returns:
        SessionLoggerAdapter with recording context.
    """
    return SessionLoggerAdapter(get_logger('session'), recording)
