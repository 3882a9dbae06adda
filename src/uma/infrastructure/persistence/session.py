"""Engine and session helpers for the SQL allocation store."""
from __future__ import annotations

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def make_engine(dsn: str) -> Engine:
    if dsn.startswith("sqlite"):
        options: dict[str, object] = {"connect_args": {"check_same_thread": False, "timeout": 5}}
        if ":memory:" in dsn or dsn.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            options["poolclass"] = StaticPool
        engine = create_engine(dsn, **options)

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):  # pragma: no cover - driver specific
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        dsn,
        pool_size=20,
        max_overflow=40,
        pool_timeout=5,
        pool_recycle=1800,
    )


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False)


__all__ = ["make_engine", "make_session_factory"]
