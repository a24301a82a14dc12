"""
Logging setup.

All loggers live under the "mathocr" logger, which owns the handlers:
- console on stdout, INFO (DEBUG when DEBUG=1), coloured on a TTY
- optional file under LOG_DIR (LOG_TO_FILE=1), always DEBUG

Usage:
    from mathocr.logger import get_logger
    logger = get_logger("PageRasterizer")   # -> "mathocr.PageRasterizer"
    logger.info("Rendered page 3")
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import get_config

ROOT_LOGGER = "mathocr"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"


class ColoredFormatter(logging.Formatter):
    """Console formatter with ANSI-coloured level names."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname)
        if color is None:
            return super().format(record)
        # Work on a copy so the file handler sees the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


_console_handler: Optional[logging.Handler] = None


def setup_logging(
    debug: Optional[bool] = None,
    log_dir: Optional[Path] = None,
    log_to_file: Optional[bool] = None,
) -> logging.Logger:
    """
    Install the handlers on the "mathocr" logger (once).

    Arguments left as None come from the configuration.
    """
    global _console_handler

    root = logging.getLogger(ROOT_LOGGER)
    if _console_handler is not None:
        return root

    config = get_config()
    debug = config.debug if debug is None else debug
    log_dir = config.logs_dir if log_dir is None else log_dir
    log_to_file = config.log_to_file if log_to_file is None else log_to_file

    root.setLevel(logging.DEBUG)

    _console_handler = logging.StreamHandler(sys.stdout)
    _console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    formatter_cls = ColoredFormatter if sys.stdout.isatty() else logging.Formatter
    _console_handler.setFormatter(formatter_cls(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(_console_handler)

    if log_to_file:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"mathocr_{datetime.now():%Y%m%d_%H%M%S}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(file_handler)
        root.debug(f"Log file: {log_file}")

    return root


def set_debug(enabled: bool) -> None:
    """Switch console verbosity after setup (e.g. from a --debug flag)."""
    setup_logging()
    _console_handler.setLevel(logging.DEBUG if enabled else logging.INFO)


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get a logger under the "mathocr" hierarchy.

    Args:
        name: Component name, usually a processor's `name`

    Returns:
        Logger instance
    """
    root = setup_logging()
    if name == ROOT_LOGGER:
        return root
    return root.getChild(name)


def log_timing(logger: logging.Logger, operation: str, duration_sec: float) -> None:
    """Log a stage duration: DEBUG when quick, INFO from one second up."""
    from .utils.timing import format_duration

    level = logging.DEBUG if duration_sec < 1 else logging.INFO
    logger.log(level, f"{operation}: {format_duration(duration_sec)}")
