# backend/rentdesk/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .db import Database
from .domain.errors import RentdeskError
from .logging_config import configure_logging
from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.cash_movements import router as cash_movements_router
from .routers.contracts import router as contracts_router
from .routers.dashboard import router as dashboard_router
from .routers.health import router as health_router
from .routers.installments import router as installments_router
from .routers.migrate import router as migrate_router
from .routers.payments import router as payments_router

API_PREFIX = "/api"

log = logging.getLogger("rentdesk")


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


def _error_body(code: str, message: str) -> dict:
    return {"ok": False, "error": code, "message": message}


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()) if x != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "invalid request"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RentdeskError)
    async def _rentdesk_error(request: Request, exc: RentdeskError):
        return JSONResponse(_error_body(exc.code, exc.message), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(_error_body("validation_error", _validation_message(exc)), status_code=400)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        log.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(_error_body("internal_error", "internal server error"), status_code=500)


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Application factory. The store handle is built here (or injected by
    tests/CLI), kept on app.state and disposed on shutdown.
    """
    configure_logging()

    if database is None:
        database = Database(settings.database_url)
        if settings.auto_create_schema:
            database.create_schema()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.database.dispose()

    app = FastAPI(title="rentdesk billing", version=settings.api_version, lifespan=lifespan)
    app.state.database = database

    # added first = innermost; request id must wrap the request log line
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(dashboard_router, prefix=API_PREFIX)

    app.include_router(contracts_router, prefix=API_PREFIX)
    app.include_router(installments_router, prefix=API_PREFIX)
    app.include_router(payments_router, prefix=API_PREFIX)
    app.include_router(cash_movements_router, prefix=API_PREFIX)

    app.include_router(migrate_router, prefix=API_PREFIX)

    return app


app = create_app()
