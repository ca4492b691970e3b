# docmerge/logging_config.py

"""Logging configuration for the merge engine.

Console output goes to stderr (stdout carries the CLI's JSON responses);
a log file is kept under the platform user log directory.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from docmerge.settings import log_dir


def setup_logging(debug: bool = False, log_file: Optional[Path] = None) -> logging.Logger:
    """Configure the ``docmerge`` logger with a console and a file handler.

    Args:
        debug: Log at DEBUG level (per-cell reads, out-of-range substitutions).
        log_file: Override the log file location; ``None`` uses the user log dir.

    Returns:
        The configured package logger.
    """
    level = logging.DEBUG if debug else logging.INFO

    detailed_formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(threadName)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    simple_formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logger = logging.getLogger("docmerge")
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level if debug else logging.WARNING)
    console_handler.setFormatter(simple_formatter)
    logger.addHandler(console_handler)

    if log_file is None:
        log_file = log_dir() / "docmerge.log"
    try:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        logger.warning("File logging disabled (%s): %s", log_file, e)
    else:
        file_handler.setLevel(level)
        file_handler.setFormatter(detailed_formatter)
        logger.addHandler(file_handler)

    return logger

