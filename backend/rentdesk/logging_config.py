# backend/rentdesk/logging_config.py
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .middleware.request_id import get_request_id

# ids services attach with log.info(..., extra={...})
DOMAIN_KEYS = ("tenant_id", "actor", "contract_id", "installment_id", "payment_id", "movement_id")
# fields of the per-request access line
HTTP_KEYS = ("method", "path", "query", "status_code", "latency_ms")


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line: ts, level, logger, message, request_id when a
    request is in flight, any known extras that are set, and the traceback.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid = get_request_id()
        if rid:
            payload["request_id"] = rid

        for k in DOMAIN_KEYS + HTTP_KEYS:
            v = getattr(record, k, None)
            if v is not None:
                payload[k] = v

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    """Idempotent: replaces root handlers, so app factory and CLI can both call it."""
    level = (os.getenv("LOG_LEVEL") or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    # StructuredLoggingMiddleware writes the access line
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel((os.getenv("SQL_LOG_LEVEL") or "WARNING").upper())
