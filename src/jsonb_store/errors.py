"""
jsonb_store.errors

Exception taxonomy for the store.

Responsibilities:
- Give callers one base class (`StoreError`) to catch.
- Keep builtin bases (`OSError`, `TypeError`, `ValueError`) so generic handlers still work.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for every error raised by jsonb_store itself."""


class StoreIOError(StoreError, OSError):
    """The database file could not be opened, is locked, or is not a database."""

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        return f"{self.args[0]} (path={self.path!r})"


class ClosedHandleError(StoreError):
    """An operation was attempted on a repository after `close()`."""


class SerializationError(StoreError, TypeError):
    """An object could not be encoded to JSON."""


class DeserializationError(StoreError, ValueError):
    """A stored payload does not match the type it was read as."""

    def __init__(self, message: str, *, table: str, id: str) -> None:
        super().__init__(message)
        self.table = table
        self.id = id

    def __str__(self) -> str:
        return f"{self.args[0]} (table={self.table!r}, id={self.id!r})"


class TransactionError(StoreError):
    """A transaction could not be started or committed; see `__cause__`."""
