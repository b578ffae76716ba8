from __future__ import annotations

import logging
import os
import sys
from typing import Iterable

APP_LOGGER = "newhighs"

# httpx logs one INFO line per request; a pull is dozens of batches
NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def _level(name: str, default: str) -> int:
    return getattr(logging, os.getenv(name, default).upper(), logging.INFO)


def quiet_libraries(names: Iterable[str] = NOISY_LOGGERS) -> None:
    lib_level = _level("LIB_LOG_LEVEL", "WARNING")
    for n in names:
        logging.getLogger(n).setLevel(lib_level)


def setup_logging(name: str = APP_LOGGER) -> logging.Logger:
    """
    Process-wide app logger writing `time | level | logger | message` to stdout.
    - LOG_LEVEL: level for the app logger and its children
    - LIB_LOG_LEVEL: level for httpx/httpcore/aiosqlite (default WARNING)
    """
    level = _level("LOG_LEVEL", "INFO")

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # uvicorn --reload re-imports this module
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))

    logger.addHandler(handler)
    logger.propagate = False
    quiet_libraries()
    return logger


def get_logger(component: str) -> logging.Logger:
    """Child of the app logger, e.g. newhighs.pipeline."""
    return logging.getLogger(f"{APP_LOGGER}.{component}")


logger: logging.Logger = setup_logging()
