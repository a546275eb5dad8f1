"""
jsonb_store.repository

Blocking repository over a single SQLite file.

Responsibilities:
- Own one SQLAlchemy connection and apply the durability pragmas at open.
- Create document/signal tables and run CRUD against them.
- Run caller batches atomically (commit on success, rollback + re-raise on error).
"""

from __future__ import annotations

import os
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress
from typing import Any, TypeVar

from sqlalchemy import Connection, Engine, inspect
from sqlalchemy.exc import SQLAlchemyError

from jsonb_store import codec
from jsonb_store.db import statements
from jsonb_store.db.engine import apply_pragmas, create_engine
from jsonb_store.db.records import DocumentRecord, SignalRecord
from jsonb_store.db.schema import TableRef, TableRegistry, table_name
from jsonb_store.errors import ClosedHandleError, StoreIOError, TransactionError
from jsonb_store.observability.logging import get_logger
from jsonb_store.settings import StoreSettings

log = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def resolve_type(table: TableRef, type_: Any) -> Any:
    # A model type passed as the table doubles as the decode target.
    if type_ is not None:
        return type_
    return table if isinstance(table, type) else Any


def encode_document(obj: Any) -> str:
    if obj is None:
        raise ValueError("cannot store None; delete the id instead")
    return codec.encode(obj)


class Repository:
    """
    One connection to one SQLite file.

    Use `Repository.open(path)` to own a fresh connection, or wrap an existing
    SQLAlchemy `Connection` directly (the repository then never closes it).
    Not safe for concurrent use from several threads; open one handle each.
    """

    def __init__(
        self,
        connection: Connection,
        *,
        owns_connection: bool = False,
        path: str | None = None,
    ) -> None:
        self._conn = connection
        self._owns_connection = owns_connection
        self._path = path or str(connection.engine.url.database)
        self._tables = TableRegistry()
        self._closed = False
        apply_pragmas(connection.connection)
        log.info("store.opened", path=self._path, owns_connection=owns_connection)

    @classmethod
    def open(cls, path: str | os.PathLike[str], *, echo: bool = False) -> Repository:
        path = os.fspath(path)
        engine = create_engine(path, echo=echo)
        try:
            conn = engine.connect()
            try:
                return cls(conn, owns_connection=True, path=path)
            except BaseException:
                conn.close()
                raise
        except (SQLAlchemyError, sqlite3.Error) as exc:
            engine.dispose()
            raise StoreIOError(f"cannot open database: {exc}", path=path) from exc

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> Repository:
        return cls.open(settings.database_path, echo=settings.echo_sql)

    # Lifetime

    @property
    def connection(self) -> Connection:
        self._ensure_open()
        return self._conn

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_connection:
            engine: Engine = self._conn.engine
            self._conn.close()
            engine.dispose()
        log.info("store.closed", path=self._path)

    def __enter__(self) -> Repository:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClosedHandleError(f"repository for {self._path!r} is closed")

    @contextmanager
    def _unit(self) -> Iterator[Connection]:
        # Statements join an enclosing transaction if there is one, otherwise commit on their own.
        self._ensure_open()
        if self._conn.in_transaction():
            yield self._conn
        else:
            with self._conn.begin():
                yield self._conn

    # Tables

    def create_document_table(self, table: TableRef) -> None:
        with self._unit() as conn:
            tbl = self._tables.documents(table)
            tbl.create(conn, checkfirst=True)
        log.debug("store.table_ready", table=tbl.name, shape="document")

    def create_table(self, model: type) -> None:
        self.create_document_table(model)

    def create_signal_table(self, table: TableRef) -> None:
        with self._unit() as conn:
            tbl = self._tables.signals(table)
            tbl.create(conn, checkfirst=True)
        log.debug("store.table_ready", table=tbl.name, shape="signal")

    def table_exists(self, table: TableRef) -> bool:
        with self._unit() as conn:
            return inspect(conn).has_table(table_name(table))

    # Documents

    def upsert(self, table: TableRef, id: str, obj: Any) -> None:
        with self._unit() as conn:
            tbl = self._tables.documents(table)
            conn.execute(statements.upsert_document(tbl, id=id, data=encode_document(obj)))

    def get(self, table: TableRef, id: str, type_: type[T] | Any = None) -> T | None:
        with self._unit() as conn:
            tbl = self._tables.documents(table)
            text = conn.execute(statements.select_document_data(tbl, id)).scalar_one_or_none()
        if text is None:
            return None
        return codec.decode_stored(text, resolve_type(table, type_), table=tbl.name, id=id)

    def get_record(self, table: TableRef, id: str) -> DocumentRecord | None:
        with self._unit() as conn:
            tbl = self._tables.documents(table)
            row = conn.execute(statements.select_document(tbl, id)).one_or_none()
        return None if row is None else statements.to_document_record(row, tbl)

    def get_all(self, table: TableRef, type_: type[T] | Any = None) -> Iterator[T]:
        """
        Decode every document in `table`, in the engine's scan order.

        Rows are read in one statement; decoding happens lazily as the
        returned iterator is consumed.
        """

        with self._unit() as conn:
            tbl = self._tables.documents(table)
            rows = conn.execute(statements.select_all_document_data(tbl)).all()
        target = resolve_type(table, type_)
        return (
            codec.decode_stored(row.data, target, table=tbl.name, id=row.id) for row in rows
        )

    def delete(self, table: TableRef, id: str) -> bool:
        with self._unit() as conn:
            stmt = statements.delete_by_id(self._tables.documents(table), id)
            return conn.execute(stmt).rowcount > 0

    def count(self, table: TableRef) -> int:
        with self._unit() as conn:
            return conn.execute(statements.count_rows(self._tables.documents(table))).scalar_one()

    # Signals

    def upsert_signal(
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
        with self._unit() as conn:
            stmt = statements.upsert_signal(
                self._tables.signals(table),
                id=id,
                signal_type=signal_type,
                data=data,
                sample_rate=sample_rate,
                channels=channels,
                metadata=statements.encode_metadata(metadata),
            )
            conn.execute(stmt)

    def get_signal(self, table: TableRef, id: str) -> SignalRecord | None:
        with self._unit() as conn:
            tbl = self._tables.signals(table)
            row = conn.execute(statements.select_signal(tbl, id)).one_or_none()
        return None if row is None else statements.to_signal_record(row, tbl)

    def get_signals(
        self, table: TableRef, signal_type: str | None = None
    ) -> Iterator[SignalRecord]:
        with self._unit() as conn:
            tbl = self._tables.signals(table)
            rows = conn.execute(statements.select_signals(tbl, signal_type)).all()
        return (statements.to_signal_record(row, tbl) for row in rows)

    def delete_signal(self, table: TableRef, id: str) -> bool:
        with self._unit() as conn:
            stmt = statements.delete_by_id(self._tables.signals(table), id)
            return conn.execute(stmt).rowcount > 0

    # Transactions

    @contextmanager
    def transaction(self) -> Iterator[Repository]:
        self._ensure_open()
        if self._conn.in_transaction():
            raise TransactionError("a transaction is already active on this handle")
        trans = self._conn.begin()
        try:
            yield self
        except BaseException as exc:
            trans.rollback()
            log.warning("store.transaction_rolled_back", path=self._path, error=repr(exc))
            raise
        try:
            trans.commit()
        except SQLAlchemyError as exc:
            self._discard_failed_commit()
            trans.close()
            log.error("store.commit_failed", path=self._path, error=repr(exc))
            raise TransactionError(f"commit failed: {exc}") from exc

    def _discard_failed_commit(self) -> None:
        # SQLite keeps the transaction open after a failed COMMIT; SQLAlchemy has
        # already marked it inactive, so the rollback goes to the driver directly.
        with suppress(SQLAlchemyError, sqlite3.Error):
            self._conn.connection.rollback()

    def execute_in_transaction(self, batch: Callable[[Repository], R]) -> R:
        with self.transaction() as repo:
            return batch(repo)


# --- Module Notes -----------------------------------------------------------
# `AsyncRepository` mirrors this class method for method; keep the two in step.
