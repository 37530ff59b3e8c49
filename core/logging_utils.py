from __future__ import annotations

import json
import logging
import os
import re
from contextvars import ContextVar
from typing import Any, Optional

_REQUEST_ID: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

_MASKS = (
    (re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9._~+/=-]+"), r"\1 ***"),
    (re.compile(r"(?i)\b(password|secret|token|id_token)=([^\s&]+)"), r"\1=***"),
)

# structured fields callers may pass through ``extra=``
_EXTRA_FIELDS = ("handler", "method", "status", "tenant_root", "actor", "event")


def set_request_id(request_id: Optional[str]) -> None:
    _REQUEST_ID.set(request_id)


def get_request_id() -> Optional[str]:
    return _REQUEST_ID.get()


def scrub(text: str) -> str:
    """Mask credentials that may end up in log messages."""
    out = text or ""
    for pattern, replacement in _MASKS:
        out = pattern.sub(replacement, out)
    return out


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line with credentials masked."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        data: dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": scrub(record.getMessage()),
        }
        if getattr(record, "request_id", None):
            data["request_id"] = record.request_id
        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False, default=str)


def configure_json_logging(level: int | str = logging.INFO) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)


def maybe_enable_json_logging() -> None:
    """Switch to JSON lines when JSON_LOGS is truthy; LOG_LEVEL picks the level."""
    if (os.environ.get("JSON_LOGS") or "").strip().lower() in {"1", "true", "yes", "on"}:
        configure_json_logging((os.environ.get("LOG_LEVEL") or "INFO").strip().upper())
