"""
jsonb_store.db.statements

Statement builders and row mapping shared by the sync and async repositories.

Responsibilities:
- Build upsert (`INSERT ... ON CONFLICT(id) DO UPDATE`), select, delete and count statements.
- Map result rows onto `DocumentRecord` / `SignalRecord`.
"""

from __future__ import annotations

import time
from typing import Any

from sqlalchemy import Delete, Row, Select, Table, delete, func, select
from sqlalchemy.dialects.sqlite import Insert, insert

from jsonb_store import codec
from jsonb_store.db.records import DocumentRecord, SignalRecord


def epoch_now() -> int:
    return int(time.time())


# Documents


def upsert_document(table: Table, *, id: str, data: str) -> Insert:
    now = epoch_now()
    stmt = insert(table).values(id=id, data=data, created_at=now, updated_at=now)
    # created_at is left untouched on conflict.
    return stmt.on_conflict_do_update(
        index_elements=[table.c.id],
        set_={"data": stmt.excluded.data, "updated_at": stmt.excluded.updated_at},
    )


def select_document_data(table: Table, id: str) -> Select[Any]:
    return select(table.c.data).where(table.c.id == id)


def select_document(table: Table, id: str) -> Select[Any]:
    return select(table.c.id, table.c.data, table.c.created_at, table.c.updated_at).where(
        table.c.id == id
    )


def select_all_document_data(table: Table) -> Select[Any]:
    return select(table.c.id, table.c.data)


def to_document_record(row: Row[Any], table: Table) -> DocumentRecord:
    return DocumentRecord(
        id=row.id,
        data=row.data,
        created_at=row.created_at,
        updated_at=row.updated_at,
        table=table.name,
    )


# Signals


def encode_metadata(metadata: Any) -> str | None:
    # Strings are stored verbatim; anything else is serialized to JSON.
    if metadata is None or isinstance(metadata, str):
        return metadata
    return codec.encode(metadata)


def upsert_signal(
    table: Table,
    *,
    id: str,
    signal_type: str,
    data: bytes,
    sample_rate: float | None,
    channels: int | None,
    metadata: str | None,
) -> Insert:
    stmt = insert(table).values(
        id=id,
        signal_type=signal_type,
        sample_rate=sample_rate,
        channels=channels,
        data=bytes(data),
        metadata=metadata,
        created_at=epoch_now(),
    )
    excluded = stmt.excluded
    return stmt.on_conflict_do_update(
        index_elements=[table.c.id],
        set_={
            "signal_type": excluded.signal_type,
            "sample_rate": excluded.sample_rate,
            "channels": excluded.channels,
            "data": excluded.data,
            "metadata": excluded["metadata"],
        },
    )


def _signal_columns(table: Table) -> Select[Any]:
    c = table.c
    return select(
        c.id, c.signal_type, c.sample_rate, c.channels, c.data, c["metadata"], c.created_at
    )


def select_signal(table: Table, id: str) -> Select[Any]:
    return _signal_columns(table).where(table.c.id == id)


def select_signals(table: Table, signal_type: str | None = None) -> Select[Any]:
    stmt = _signal_columns(table)
    if signal_type:
        stmt = stmt.where(table.c.signal_type == signal_type)
    return stmt


def to_signal_record(row: Row[Any], table: Table) -> SignalRecord:
    m = row._mapping
    return SignalRecord(
        id=m["id"],
        signal_type=m["signal_type"],
        sample_rate=m["sample_rate"],
        channels=m["channels"],
        data=bytes(m["data"]),
        metadata=m["metadata"],
        created_at=m["created_at"],
        table=table.name,
    )


# Shared


def delete_by_id(table: Table, id: str) -> Delete:
    return delete(table).where(table.c.id == id)


def count_rows(table: Table) -> Select[Any]:
    return select(func.count()).select_from(table)
