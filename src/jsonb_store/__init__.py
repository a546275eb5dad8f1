"""
jsonb_store

JSON documents and binary signals in a single SQLite file.

Responsibilities:
- Expose the repositories, records and errors as the public API.
"""

from jsonb_store.async_repository import AsyncRepository
from jsonb_store.db.records import DocumentRecord, SignalRecord
from jsonb_store.errors import (
    ClosedHandleError,
    DeserializationError,
    SerializationError,
    StoreError,
    StoreIOError,
    TransactionError,
)
from jsonb_store.repository import Repository

__all__ = [
    "AsyncRepository",
    "ClosedHandleError",
    "DeserializationError",
    "DocumentRecord",
    "Repository",
    "SerializationError",
    "SignalRecord",
    "StoreError",
    "StoreIOError",
    "TransactionError",
    "__version__",
]

__version__ = "0.1.0"
