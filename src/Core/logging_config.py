"""
src/Core/logging_config.py
==========================
Process-wide logging setup.

Every module obtains its logger through get_logger(__name__) and prefixes
messages with a bracketed component tag, e.g.:

    logger.info("[TRIP-SYNC] device=%s received=%d", device_id, count)

setup_logging() is called once by the FastAPI lifespan (or by a scheduler
script) and is safe to call again.
"""

import logging
import sys
from typing import Optional

from src.Core.config import settings

_CONFIGURED = False


def setup_logging(level: Optional[str] = None) -> None:
    """Attach a stdout handler to the root logger with the configured level."""
    global _CONFIGURED

    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))

    if _CONFIGURED:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return the module logger; handlers live on the root logger."""
    return logging.getLogger(name)
