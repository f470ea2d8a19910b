from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path


ROOT_LOGGER = "assetpipe"
_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
_configured = False


def _ensure_base_logger() -> None:
    global _configured
    if _configured:
        return
    level = getattr(logging, os.getenv("ASSETPIPE_LOG_LEVEL", "INFO").upper(), logging.INFO)
    logging.basicConfig(level=level, format=_FORMAT)
    # basicConfig is a no-op when the host already configured logging
    logging.getLogger(ROOT_LOGGER).setLevel(level)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    _ensure_base_logger()
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def log_to_file(log_file: Path | str, max_bytes: int = 1_000_000, backups: int = 3) -> logging.Handler:
    """Mirror every `assetpipe.*` record into a rotating log file.

    Calling it again with the same file returns the existing handler.
    """
    _ensure_base_logger()
    path = Path(log_file).resolve()
    logger = logging.getLogger(ROOT_LOGGER)
    for h in logger.handlers:
        if isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == path:
            return h
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    return handler
