# backend/rentdesk/db.py
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

log = logging.getLogger("rentdesk.db")


class Base(DeclarativeBase):
    pass


class Database:
    """
    Explicit store handle: one engine + session factory per process.

    Built once by create_app() (or by the CLI), health-checked by /api/health
    and disposed on shutdown. Request handlers never touch module globals;
    they receive a session through get_db().
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        connect_args: dict[str, Any] = {}
        if url.startswith("sqlite"):
            # TestClient / threadpool handlers use the connection from another thread
            connect_args["check_same_thread"] = False

        self.url = url
        self.engine: Engine = create_engine(
            url,
            pool_pre_ping=True,
            future=True,
            echo=echo,
            connect_args=connect_args,
        )
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )

    def create_schema(self) -> None:
        # models must be imported so every table is registered on Base.metadata
        from . import models  # noqa: F401

        Base.metadata.create_all(self.engine)

    def session(self) -> Session:
        return self.session_factory()

    def ping(self) -> dict[str, Any]:
        t0 = time.time()
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            log.warning("database ping failed: %s", e)
            return {"status": "unhealthy", "error": str(e)}
        return {"status": "healthy", "latency_ms": int((time.time() - t0) * 1000)}

    def dispose(self) -> None:
        log.info("disposing database engine")
        self.engine.dispose()


def get_db(request: Request) -> Iterator[Session]:
    """
    FastAPI dependency.

    Rolls back on exceptions so a failed statement never leaks a half-open
    transaction into later work on the same session.
    """
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    One commit for a multi-entity mutation (payment + installment + cash
    movements, contract + installments, ...). Any exception rolls back every
    write made inside the block.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
