# backend/rentdesk/middleware/request_id.py
from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LEN = 128

_current: ContextVar[str | None] = ContextVar("rentdesk_request_id", default=None)


def get_request_id() -> str | None:
    return _current.get()


def _incoming_id(request: Request) -> str | None:
    # starlette headers are case-insensitive
    rid = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    if not rid or len(rid) > MAX_REQUEST_ID_LEN:
        return None
    return rid


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Reuses the caller's X-Request-ID (a proxy may have set it) or mints one,
    exposes it to log records through a context var and echoes it back.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = _incoming_id(request) or uuid.uuid4().hex
        request.state.request_id = rid

        token = _current.set(rid)
        try:
            response = await call_next(request)
        finally:
            _current.reset(token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
