"""
Logging setup for modoptim.

Every module logs through ``logging.getLogger(__name__)``; applications call
``setup_logging`` once to get readable console output.

Example:
    >>> from modoptim.utils import setup_logging
    >>> logger = setup_logging(level=logging.DEBUG)
    >>> logger.info('Optimizer ready')
"""

import logging
import sys
from typing import Optional, Union


class ColoredFormatter(logging.Formatter):
    """
    Colored console formatter.

    Adds colors to log levels for better readability.
    """

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        # Color a copy so other handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in self.COLORS:
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    name: str = 'modoptim',
    level: Union[int, str] = logging.INFO,
    console: bool = True,
    colored: bool = True,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure the ``modoptim`` logger hierarchy.

    Args:
        name: Logger name
        level: Logging level (int or name such as 'DEBUG')
        console: Log to stdout
        colored: Use colored console output
        log_file: Also log to this file

    Returns:
        Configured logger
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    fmt = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
    datefmt = '%Y-%m-%d %H:%M:%S'

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        formatter_cls = ColoredFormatter if colored else logging.Formatter
        console_handler.setFormatter(formatter_cls(fmt, datefmt=datefmt))
        logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
        logger.addHandler(file_handler)
        logger.info(f"Logging to file: {log_file}")

    return logger
