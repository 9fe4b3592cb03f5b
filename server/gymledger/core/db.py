from __future__ import annotations

import threading
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from gymledger.core.config import settings

Base = declarative_base()

# All store access goes through one lock: request bodies and scheduled jobs
# never interleave their transactions.
store_lock = threading.Lock()


def _install_sqlite_hooks(engine: Engine) -> None:
    file_backed = engine.url.database not in (None, "", ":memory:")

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:  # pragma: no cover - driver hook
        # Hand transaction control to SQLAlchemy so SAVEPOINT and
        # PRAGMA defer_foreign_keys apply to the transaction we think we are in.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if file_backed:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(connection) -> None:  # pragma: no cover - driver hook
        connection.exec_driver_sql("BEGIN")


def build_engine(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(url, future=True, connect_args=connect_args, **kwargs)
        _install_sqlite_hooks(engine)
        return engine
    return create_engine(url, future=True, pool_pre_ping=True, **kwargs)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def get_db() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def serialized(db: Session) -> Generator[Session, None, None]:
    """Hold the store lock while a request body works with its session.

    Entered inside the endpoint, on the worker thread that runs it. A request
    waiting here never holds the lock, and the holder needs no further
    thread to finish.
    """

    with store_lock:
        try:
            yield db
        finally:
            # Anything left open by the request ends inside the lock.
            db.rollback()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Serialized session for background jobs."""

    with store_lock:
        session = SessionLocal()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
