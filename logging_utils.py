"""Logging helpers shared across modules."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional


_GREPFUZZ_LOGGER_NAME = "grepfuzz"


def setup_logging(level: str = "WARNING", log_file: Optional[Path] = None) -> logging.Logger:
    """Configure diagnostics on stderr (+ optional file) without clobbering root handlers.

    stdout is reserved for classification output, so nothing here writes to it.
    """

    logger = logging.getLogger(_GREPFUZZ_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stderr_handlers = [
        handler
        for handler in logger.handlers
        if type(handler) is logging.StreamHandler
    ]
    if stderr_handlers:
        # sys.stderr may have been swapped since the first call
        for handler in stderr_handlers:
            handler.setStream(sys.stderr)
    else:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        if not any(
            isinstance(handler, logging.FileHandler) and getattr(handler, "baseFilename", None) == str(log_file.absolute())
            for handler in logger.handlers
        ):
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        logger.debug("Logging initialized at %s", log_file)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Convenience wrapper for module loggers."""

    return logging.getLogger(f"{_GREPFUZZ_LOGGER_NAME}.{name}")
