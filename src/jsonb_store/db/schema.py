"""
jsonb_store.db.schema

Table shapes for document and signal storage.

Responsibilities:
- Build SQLAlchemy `Table` objects for a caller-supplied table name.
- Cache them per repository so repeated operations reuse the same objects.
"""

from __future__ import annotations

from sqlalchemy import REAL, Column, Integer, LargeBinary, MetaData, Table, Text, text

# A table is addressed by name, or by a model type whose `__name__` is the name.
TableRef = str | type

_EPOCH_NOW = text("(CAST(strftime('%s', 'now') AS INTEGER))")


def table_name(table: TableRef) -> str:
    name = table if isinstance(table, str) else table.__name__
    if not name:
        raise ValueError("table name must not be empty")
    return name


def document_table(name: str) -> Table:
    return Table(
        name,
        MetaData(),
        Column("id", Text, primary_key=True),
        Column("data", Text, nullable=False),
        Column("created_at", Integer, nullable=False, server_default=_EPOCH_NOW),
        Column("updated_at", Integer, nullable=False, server_default=_EPOCH_NOW),
    )


def signal_table(name: str) -> Table:
    return Table(
        name,
        MetaData(),
        Column("id", Text, primary_key=True),
        Column("signal_type", Text, nullable=False),
        Column("sample_rate", REAL, nullable=True),
        Column("channels", Integer, nullable=True),
        Column("data", LargeBinary, nullable=False),
        Column("metadata", Text, nullable=True),
        Column("created_at", Integer, nullable=False, server_default=_EPOCH_NOW),
    )


class TableRegistry:
    """
    Per-repository cache of `Table` objects.

    Each table gets its own `MetaData` so a document table and a signal table
    may be described under the same name without colliding in Python; the
    database itself still only holds whichever was created first.
    """

    def __init__(self) -> None:
        self._documents: dict[str, Table] = {}
        self._signals: dict[str, Table] = {}

    def documents(self, table: TableRef) -> Table:
        name = table_name(table)
        tbl = self._documents.get(name)
        if tbl is None:
            tbl = self._documents[name] = document_table(name)
        return tbl

    def signals(self, table: TableRef) -> Table:
        name = table_name(table)
        tbl = self._signals.get(name)
        if tbl is None:
            tbl = self._signals[name] = signal_table(name)
        return tbl
