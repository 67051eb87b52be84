"""Structured JSON event logging for aggregation and reading sessions."""
from __future__ import annotations

import logging
from typing import Any, Dict

import orjson

LOGGER_NAME = "namavruksha"


def configure_logger(level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def _default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return str(value)


def log_event(event: str, *, level: int = logging.INFO, **payload: Any) -> None:
    """Emit one JSON object per line on the package logger."""

    logger = configure_logger()
    data: Dict[str, Any] = {"event": event, **payload}
    message = orjson.dumps(data, default=_default).decode("utf-8")
    logger.log(level, message)
