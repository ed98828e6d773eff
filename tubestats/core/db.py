"""Database engine and session factory."""

from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tubestats.core.config import settings


def build_engine(url: str) -> Engine:
    """Create an engine; SQLite gets foreign keys switched on so cascades behave like Postgres."""
    kwargs: Dict[str, Any] = {"pool_pre_ping": True}
    is_sqlite = url.startswith("sqlite")

    if is_sqlite:
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **kwargs)

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):  # noqa: ANN001
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
