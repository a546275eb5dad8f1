"""
jsonb_store.async_repository

asyncio repository over a single SQLite file (SQLAlchemy async + aiosqlite).

Responsibilities:
- Same operations and contracts as `jsonb_store.repository.Repository`.
- Delegate suspension points to the aiosqlite driver; no extra locking or timeouts.
"""

from __future__ import annotations

import os
import sqlite3
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from contextlib import asynccontextmanager, suppress
from typing import Any, TypeVar

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from jsonb_store import codec
from jsonb_store.db import statements
from jsonb_store.db.engine import apply_pragmas, create_async_engine
from jsonb_store.db.records import DocumentRecord, SignalRecord
from jsonb_store.db.schema import TableRef, TableRegistry, table_name
from jsonb_store.errors import ClosedHandleError, StoreIOError, TransactionError
from jsonb_store.observability.logging import get_logger
from jsonb_store.repository import encode_document, resolve_type
from jsonb_store.settings import StoreSettings

log = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class AsyncRepository:
    """
    Async counterpart of `Repository`. Open it with `await AsyncRepository.open(path)`.

    A single task should drive a handle at a time; concurrent tasks need their
    own handles.
    """

    def __init__(
        self,
        connection: AsyncConnection,
        *,
        owns_connection: bool = False,
        path: str | None = None,
    ) -> None:
        # Pragmas are applied by `open`/`wrap`, which can await.
        self._conn = connection
        self._owns_connection = owns_connection
        self._path = path or str(connection.engine.url.database)
        self._tables = TableRegistry()
        self._closed = False

    @classmethod
    async def open(cls, path: str | os.PathLike[str], *, echo: bool = False) -> AsyncRepository:
        path = os.fspath(path)
        engine = create_async_engine(path, echo=echo)
        try:
            conn = await engine.connect()
            try:
                await conn.run_sync(lambda sync_conn: apply_pragmas(sync_conn.connection))
            except BaseException:
                await conn.close()
                raise
        except (SQLAlchemyError, sqlite3.Error) as exc:
            await engine.dispose()
            raise StoreIOError(f"cannot open database: {exc}", path=path) from exc
        log.info("store.opened", path=path, owns_connection=True, variant="async")
        return cls(conn, owns_connection=True, path=path)

    @classmethod
    async def wrap(cls, connection: AsyncConnection) -> AsyncRepository:
        """Use an already-open connection; `close()` will leave it open."""

        await connection.run_sync(lambda sync_conn: apply_pragmas(sync_conn.connection))
        repo = cls(connection, owns_connection=False)
        log.info("store.opened", path=repo._path, owns_connection=False, variant="async")
        return repo

    @classmethod
    async def from_settings(cls, settings: StoreSettings) -> AsyncRepository:
        return await cls.open(settings.database_path, echo=settings.echo_sql)

    # Lifetime

    @property
    def connection(self) -> AsyncConnection:
        self._ensure_open()
        return self._conn

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_connection:
            engine = self._conn.engine
            await self._conn.close()
            await engine.dispose()
        log.info("store.closed", path=self._path, variant="async")

    async def __aenter__(self) -> AsyncRepository:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClosedHandleError(f"repository for {self._path!r} is closed")

    @asynccontextmanager
    async def _unit(self) -> AsyncIterator[AsyncConnection]:
        self._ensure_open()
        if self._conn.in_transaction():
            yield self._conn
        else:
            async with self._conn.begin():
                yield self._conn

    # Tables

    async def create_document_table(self, table: TableRef) -> None:
        async with self._unit() as conn:
            tbl = self._tables.documents(table)
            await conn.run_sync(tbl.create, checkfirst=True)
        log.debug("store.table_ready", table=tbl.name, shape="document")

    async def create_table(self, model: type) -> None:
        await self.create_document_table(model)

    async def create_signal_table(self, table: TableRef) -> None:
        async with self._unit() as conn:
            tbl = self._tables.signals(table)
            await conn.run_sync(tbl.create, checkfirst=True)
        log.debug("store.table_ready", table=tbl.name, shape="signal")

    async def table_exists(self, table: TableRef) -> bool:
        async with self._unit() as conn:
            name = table_name(table)
            return await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(name))

    # Documents

    async def upsert(self, table: TableRef, id: str, obj: Any) -> None:
        async with self._unit() as conn:
            tbl = self._tables.documents(table)
            await conn.execute(statements.upsert_document(tbl, id=id, data=encode_document(obj)))

    async def get(self, table: TableRef, id: str, type_: type[T] | Any = None) -> T | None:
        async with self._unit() as conn:
            tbl = self._tables.documents(table)
            result = await conn.execute(statements.select_document_data(tbl, id))
            text = result.scalar_one_or_none()
        if text is None:
            return None
        return codec.decode_stored(text, resolve_type(table, type_), table=tbl.name, id=id)

    async def get_record(self, table: TableRef, id: str) -> DocumentRecord | None:
        async with self._unit() as conn:
            tbl = self._tables.documents(table)
            row = (await conn.execute(statements.select_document(tbl, id))).one_or_none()
        return None if row is None else statements.to_document_record(row, tbl)

    async def get_all(self, table: TableRef, type_: type[T] | Any = None) -> Iterator[T]:
        async with self._unit() as conn:
            tbl = self._tables.documents(table)
            rows = (await conn.execute(statements.select_all_document_data(tbl))).all()
        target = resolve_type(table, type_)
        return (
            codec.decode_stored(row.data, target, table=tbl.name, id=row.id) for row in rows
        )

    async def delete(self, table: TableRef, id: str) -> bool:
        async with self._unit() as conn:
            stmt = statements.delete_by_id(self._tables.documents(table), id)
            return (await conn.execute(stmt)).rowcount > 0

    async def count(self, table: TableRef) -> int:
        async with self._unit() as conn:
            stmt = statements.count_rows(self._tables.documents(table))
            return (await conn.execute(stmt)).scalar_one()

    # Signals

    async def upsert_signal(
        self,
        table: TableRef,
        id: str,
        signal_type: str,
        data: bytes,
        *,
        sample_rate: float | None = None,
        channels: int | None = None,
        metadata: Any = None,
    ) -> None:
        async with self._unit() as conn:
            stmt = statements.upsert_signal(
                self._tables.signals(table),
                id=id,
                signal_type=signal_type,
                data=data,
                sample_rate=sample_rate,
                channels=channels,
                metadata=statements.encode_metadata(metadata),
            )
            await conn.execute(stmt)

    async def get_signal(self, table: TableRef, id: str) -> SignalRecord | None:
        async with self._unit() as conn:
            tbl = self._tables.signals(table)
            row = (await conn.execute(statements.select_signal(tbl, id))).one_or_none()
        return None if row is None else statements.to_signal_record(row, tbl)

    async def get_signals(
        self, table: TableRef, signal_type: str | None = None
    ) -> Iterator[SignalRecord]:
        async with self._unit() as conn:
            tbl = self._tables.signals(table)
            rows = (await conn.execute(statements.select_signals(tbl, signal_type))).all()
        return (statements.to_signal_record(row, tbl) for row in rows)

    async def delete_signal(self, table: TableRef, id: str) -> bool:
        async with self._unit() as conn:
            stmt = statements.delete_by_id(self._tables.signals(table), id)
            return (await conn.execute(stmt)).rowcount > 0

    # Transactions

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncRepository]:
        self._ensure_open()
        if self._conn.in_transaction():
            raise TransactionError("a transaction is already active on this handle")
        trans = await self._conn.begin()
        try:
            yield self
        except BaseException as exc:
            await trans.rollback()
            log.warning("store.transaction_rolled_back", path=self._path, error=repr(exc))
            raise
        try:
            await trans.commit()
        except SQLAlchemyError as exc:
            await self._discard_failed_commit()
            await trans.close()
            log.error("store.commit_failed", path=self._path, error=repr(exc))
            raise TransactionError(f"commit failed: {exc}") from exc

    async def _discard_failed_commit(self) -> None:
        # Same driver-level rollback as `Repository._discard_failed_commit`.
        with suppress(SQLAlchemyError, sqlite3.Error):
            await self._conn.run_sync(lambda sync_conn: sync_conn.connection.rollback())

    async def execute_in_transaction(
        self, batch: Callable[[AsyncRepository], Awaitable[R]]
    ) -> R:
        async with self.transaction() as repo:
            return await batch(repo)
