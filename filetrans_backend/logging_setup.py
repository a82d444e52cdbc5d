"""Logging setup for the FileTrans backend.

Every module logs through ``logging.getLogger(__name__)``; this installs a
single stream handler on the package logger. Setup is idempotent so that
re-importing the server (uvicorn reload, tests) never duplicates handlers.

Environment variables
- FILETRANS_LOG_LEVEL: ERROR|WARNING|INFO|DEBUG (default: WARNING)
"""

from __future__ import annotations

import logging
from typing import Dict

from .config import LOG_LEVEL


LOGGER_NAME = "filetrans_backend"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_STATE: Dict[str, object] = {
    "configured": False,
    "handler": None,
}


def _parse_level(level_name: str) -> int:
    s = (level_name or "").strip().upper()
    if s in ("CRITICAL", "FATAL"):
        return logging.CRITICAL
    if s == "ERROR":
        return logging.ERROR
    if s in ("WARN", "WARNING"):
        return logging.WARNING
    if s == "INFO":
        return logging.INFO
    if s == "DEBUG":
        return logging.DEBUG
    return logging.WARNING


def setup_logging(level_name: str | None = None) -> logging.Logger:
    """Configure the package logger once; later calls only adjust the level."""
    logger = logging.getLogger(LOGGER_NAME)
    level = _parse_level(level_name if level_name is not None else LOG_LEVEL)
    logger.setLevel(level)

    if not _STATE["configured"]:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        _STATE["handler"] = handler
        _STATE["configured"] = True
    return logger
