"""
Process-wide log setup for the MMK Today server.

Environment variables:
* LOG_LEVEL (optional, default INFO)
* LOG_FORMAT (optional, ``json`` for one JSON object per line or ``text`` for local runs)
* SERVICE_NAME (optional, stamped on every JSON line, default mmk-today)
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from telemetry.redact import mask_payload, mask_text

DEFAULT_SERVICE = "mmk-today"

# httpx and httpcore log every upstream request at INFO; the rate fetch already reports per source.
QUIET_LOGGERS = ("httpx", "httpcore", "hpack")

_configured = False

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}


def extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """The ``extra={...}`` keys attached to a record, masked and JSON-safe."""
    fields: Dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            value = str(value)
        fields[key] = value
    return mask_payload(fields)


class JsonFormatter(logging.Formatter):
    def __init__(self, service: Optional[str] = None) -> None:
        super().__init__()
        self.service = service or os.getenv("SERVICE_NAME", DEFAULT_SERVICE)

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": self.service,
            "level": record.levelname,
            "logger": record.name,
            "event": mask_text(record.getMessage()),
        }
        payload.update(extra_fields(record))
        if record.exc_info:
            payload["exc_info"] = mask_text(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=True)


class TextFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger event key=value ...`` for a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        parts = [stamp, f"{record.levelname:<7}", record.name, mask_text(record.getMessage())]
        parts.extend(f"{key}={value}" for key, value in extra_fields(record).items())
        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + mask_text(self.formatException(record.exc_info))
        return line


def _level_from_env() -> int:
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Optional[int] = None, fmt: Optional[str] = None, *, force: bool = False) -> None:
    global _configured
    if _configured and not force:
        return
    fmt = (fmt or os.getenv("LOG_FORMAT", "json")).lower()
    handler = logging.StreamHandler()
    handler.setFormatter(TextFormatter() if fmt == "text" else JsonFormatter())

    root = logging.getLogger()
    if force:
        for existing in list(root.handlers):
            if isinstance(existing.formatter, (JsonFormatter, TextFormatter)):
                root.removeHandler(existing)
    if force or not root.handlers:
        root.addHandler(handler)
    root.setLevel(level if level is not None else _level_from_env())
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
