# backend/rentdesk/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings

log = logging.getLogger("rentdesk.request")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One access line per request. The fields travel as log record extras so
    the JSON formatter puts them at the top level next to request_id.

    Registered before RequestIDMiddleware, i.e. it runs inside it and the
    request id context is already set when the line is written.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            level = logging.WARNING if status_code >= 500 else logging.INFO
            log.log(
                level,
                "%s %s -> %s",
                request.method,
                request.url.path,
                status_code,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "query": request.url.query or None,
                    "status_code": status_code,
                    "latency_ms": elapsed_ms,
                    "tenant_id": request.headers.get(settings.header_tenant_id) or settings.default_tenant_id,
                    "actor": request.headers.get(settings.header_user),
                },
            )
