# communiserver/logging_config.py
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .middleware.request_id import RequestIdLogFilter, get_request_id

# `extra=` keys copied into the JSON line when present on a record
EXTRA_FIELDS = (
    "user_id",
    "role",
    "entity_type",
    "entity_id",
    "location_id",
    "bucket",
    "key",
    "count",
    "error",
    "method",
    "path",
    "status_code",
    "latency_ms",
)

# noisy third-party loggers and the env var that overrides each level
_LIBRARY_LEVELS = {
    "sqlalchemy.engine": "SQL_LOG_LEVEL",
    "botocore": "BOTO_LOG_LEVEL",
    "boto3": "BOTO_LOG_LEVEL",
    "uvicorn.access": "ACCESS_LOG_LEVEL",
}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid = getattr(record, "request_id", None) or get_request_id()
        if rid:
            payload["request_id"] = rid

        for k in EXTRA_FIELDS:
            v = getattr(record, k, None)
            if v is not None:
                payload[k] = v

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    """Replaces root handlers with one JSON stdout handler; safe to call repeatedly."""
    level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdLogFilter())
    root.addHandler(handler)

    for name, env_var in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel((os.getenv(env_var) or "WARNING").upper())
