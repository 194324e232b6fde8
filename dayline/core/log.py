"""File logging for the synchronization core."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from dayline.core.settings import SYNC_LOG_PATH


ROOT_LOGGER = "dayline.sync"


def ensure_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Return ``name`` with the rotating sync log attached to the root sync logger."""

    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        Path(SYNC_LOG_PATH).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(SYNC_LOG_PATH, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        handler.setFormatter(formatter)
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    return logging.getLogger(name)


__all__ = ["ensure_logger", "ROOT_LOGGER"]
