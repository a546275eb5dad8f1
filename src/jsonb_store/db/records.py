"""
jsonb_store.db.records

Plain records returned by the repositories.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

from jsonb_store import codec

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class DocumentRecord:
    """A stored document row; `data` is the raw JSON text."""

    id: str
    data: str
    created_at: int
    updated_at: int
    table: str

    def decode(self, type_: type[T] | Any = Any) -> T:
        return codec.decode_stored(self.data, type_, table=self.table, id=self.id)


@dataclass(frozen=True, slots=True)
class SignalRecord:
    """
    A stored signal row.

    `data` is returned exactly as written. `metadata` is the stored text; use
    `metadata_as` to parse it when it holds JSON (a mismatch raises
    `DeserializationError`).
    """

    id: str
    signal_type: str
    sample_rate: float | None
    channels: int | None
    data: bytes
    metadata: str | None
    created_at: int
    table: str

    def metadata_as(self, type_: type[T] | Any = Any) -> T | None:
        if self.metadata is None:
            return None
        return codec.decode_stored(self.metadata, type_, table=self.table, id=self.id)
