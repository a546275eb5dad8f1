"""
jsonb_store.db.engine

SQLAlchemy engine helpers for blocking and asyncio access.

Responsibilities:
- Build engine URLs for a database file path.
- Create the sync (`pysqlite`) and async (`aiosqlite`) engines with transactional DDL.
- Apply the durability pragmas to a raw DBAPI connection.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import URL, Connection, Engine, event
from sqlalchemy import create_engine as _create_engine
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import create_async_engine as _create_async_engine

# Applied to every handle at open; not configurable.
PRAGMAS: tuple[str, ...] = (
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
)


def database_url(path: str, *, driver: str = "pysqlite") -> URL:
    return URL.create(f"sqlite+{driver}", database=path)


def create_engine(path: str, *, echo: bool = False) -> Engine:
    engine = _create_engine(database_url(path), echo=echo)
    enable_transactional_ddl(engine)
    return engine


def create_async_engine(path: str, *, echo: bool = False) -> AsyncEngine:
    engine = _create_async_engine(database_url(path, driver="aiosqlite"), echo=echo)
    enable_transactional_ddl(engine.sync_engine)
    return engine


def enable_transactional_ddl(engine: Engine) -> None:
    """
    Make SQLAlchemy, not the driver, emit BEGIN.

    Left alone, pysqlite (and aiosqlite on top of it) only opens a transaction
    before DML and commits DDL on its own, so a rolled-back batch would keep the
    tables it created. With the driver in autocommit mode and an explicit BEGIN
    on every SQLAlchemy transaction, DDL and DML roll back together.
    Call it on an engine of your own before wrapping its connections.
    """

    @event.listens_for(engine, "connect")
    def _driver_autocommit(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN")


def apply_pragmas(dbapi_connection: Any) -> None:
    """
    Run `PRAGMAS` on a DBAPI-level connection.

    Works with both the pysqlite connection and SQLAlchemy's aiosqlite adapter,
    whose cursor executes synchronously from inside `run_sync`. This is also
    the first statement to touch the file, so a corrupt or locked database
    fails here.
    """

    cursor = dbapi_connection.cursor()
    try:
        for pragma in PRAGMAS:
            cursor.execute(pragma)
    finally:
        cursor.close()


# --- Module Notes -----------------------------------------------------------
# Each repository holds exactly one connection for its whole lifetime, so the
# pragmas are applied once at construction. The `connect`/`begin` listeners live
# on the engine because they must be in place before the first BEGIN.
