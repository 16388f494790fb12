"""Logging utilities for Knowledge Hub.

Records are written to stdout as one JSON object per line. Structured fields
travel as ``ctx_*`` extras, built with :func:`log_context`::

    logger.info("Indexed document", extra=log_context(document_id=doc.id, chunks=3))
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import orjson

_DEFAULT_LEVEL = os.environ.get("KHUB_LOG_LEVEL", "INFO")
_DEFAULT_FORMAT = os.environ.get("KHUB_LOG_FORMAT", "json")

# Per-request chatter from the provider HTTP stack.
_QUIET_LOGGERS = ("httpx", "httpcore", "multipart")


class JsonFormatter(logging.Formatter):
    """JSON line formatter that lifts ``ctx_*`` extras to top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key.startswith("ctx_"):
                payload[key[4:]] = value
        return orjson.dumps(payload, default=str).decode("utf-8")


def log_context(**fields: Any) -> dict[str, Any]:
    """Build an ``extra`` mapping whose keys the JSON formatter picks up."""
    return {f"ctx_{key}": value for key, value in fields.items() if value is not None}


def configure_logging(level: str | int = _DEFAULT_LEVEL, fmt: str = _DEFAULT_FORMAT) -> None:
    """Install the stdout handler on the root logger."""
    logging.captureWarnings(True)
    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.handlers = [handler]
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = "knowledge_hub") -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_logging", "get_logger", "log_context"]
