"""
Logging utilities for the hours logging tool.

Log records go to stderr so that stdout only carries command results
(which may be JSON meant for another program).
"""

import logging
import sys
from typing import Optional, TextIO


LOGGER_NAME = 'vms_hours'


class ColoredFormatter(logging.Formatter):
    """
    Formatter that adds ANSI colors to level names for terminal output.
    """

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        """Format log record with a colored level name."""
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
            )

        formatted = super().format(record)

        # Restore so other handlers see the plain name
        record.levelname = levelname

        return formatted


def setup_logging(verbose: bool = False, use_colors: bool = True,
                  stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Set up the application logger.

    Args:
        verbose: If True, set level to DEBUG; otherwise INFO
        use_colors: If True, color level names when the stream is a terminal
        stream: Output stream (defaults to sys.stderr)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)
    stream = stream if stream is not None else sys.stderr

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(stream)
    handler.setLevel(level)

    fmt = '%(levelname)-8s | %(message)s'
    if use_colors and hasattr(stream, 'isatty') and stream.isatty():
        formatter = ColoredFormatter(fmt=fmt)
    else:
        formatter = logging.Formatter(fmt=fmt)

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger() -> logging.Logger:
    """Get the application logger."""
    return logging.getLogger(LOGGER_NAME)


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """
    Mask a secret for debug output, keeping only a short prefix.

    Examples:
        >>> mask_secret("abcdef123456")
        'abcd******** (12 chars)'
    """
    if not value:
        return "<empty>"
    shown = value[:visible]
    return f"{shown}{'*' * (len(value) - len(shown))} ({len(value)} chars)"


def log_step(step: str, logger: Optional[logging.Logger] = None):
    """Log a processing step."""
    if logger is None:
        logger = get_logger()

    logger.info(f"→ {step}")


def log_error(error: str, logger: Optional[logging.Logger] = None):
    """Log an error message with consistent formatting."""
    if logger is None:
        logger = get_logger()

    logger.error(f"✗ {error}")


def log_success(message: str, logger: Optional[logging.Logger] = None):
    """Log a success message."""
    if logger is None:
        logger = get_logger()

    logger.info(f"✓ {message}")


def log_warning(warning: str, logger: Optional[logging.Logger] = None):
    """Log a warning message."""
    if logger is None:
        logger = get_logger()

    logger.warning(f"⚠ {warning}")
