# backend/rentdesk/routers/health.py
from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health(request: Request):
    db_status = request.app.state.database.ping()
    ok = db_status.get("status") == "healthy"
    body = {
        "ok": ok,
        "env": settings.app_env,
        "version": settings.api_version,
        "database": db_status,
    }
    return JSONResponse(body, status_code=200 if ok else 503)
