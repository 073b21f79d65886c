"""
Console logging for the automation engine.

Usage:
    from shared.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Message here")
"""

import logging
import sys
from typing import Optional

# Global cache of loggers
_loggers = {}


class ColoredFormatter(logging.Formatter):
    """Formatter that adds colors to console output"""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record):
        # Color a copy so other handlers keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        return super().format(record)


def _configured_level() -> int:
    from shared.config import config

    return logging.getLevelName(config.log_level)


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a logger that writes colored, structured lines to the console.

    Args:
        name: Logger name (typically __name__)
        level: Logging level (default: AUTOMATION_LOG_LEVEL, INFO if unset)

    Returns:
        Configured logger instance
    """
    if name in _loggers:
        return _loggers[name]

    level = level if level is not None else _configured_level()

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(
        fmt='%(asctime)s | %(name)s | %(levelname)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logger.addHandler(console_handler)

    _loggers[name] = logger
    return logger
