"""
tests.test_async_repository

The asyncio variant honours the same contracts as the blocking repository.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from jsonb_store import (
    AsyncRepository,
    ClosedHandleError,
    DeserializationError,
    StoreIOError,
    TransactionError,
)


class Person(BaseModel):
    name: str
    age: int


def add_deferred_foreign_key(dbapi_connection: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute("CREATE TABLE parent (id TEXT PRIMARY KEY)")
        cursor.execute(
            "CREATE TABLE child (id TEXT PRIMARY KEY, "
            "parent_id TEXT REFERENCES parent (id) DEFERRABLE INITIALLY DEFERRED)"
        )
    finally:
        cursor.close()


@pytest.mark.asyncio
async def test_document_crud(arepo: AsyncRepository) -> None:
    await arepo.create_table(Person)
    await arepo.upsert(Person, "1", Person(name="Alice", age=30))
    await arepo.upsert(Person, "1", Person(name="Alice", age=31))
    await arepo.upsert(Person, "2", Person(name="Bob", age=25))

    assert await arepo.get(Person, "1") == Person(name="Alice", age=31)
    assert await arepo.get(Person, "missing") is None
    assert len(list(await arepo.get_all(Person))) == 2
    assert await arepo.count(Person) == 2

    assert await arepo.delete(Person, "2") is True
    assert await arepo.delete(Person, "2") is False
    assert await arepo.table_exists(Person)


@pytest.mark.asyncio
async def test_record_keeps_created_at(arepo: AsyncRepository) -> None:
    await arepo.create_document_table("people")
    await arepo.upsert("people", "1", {"age": 30})
    first = await arepo.get_record("people", "1")
    await arepo.upsert("people", "1", {"age": 31})
    second = await arepo.get_record("people", "1")

    assert first is not None and second is not None
    assert second.created_at == first.created_at
    assert second.decode() == {"age": 31}


@pytest.mark.asyncio
async def test_signals(arepo: AsyncRepository) -> None:
    await arepo.create_signal_table("biosignals")
    await arepo.upsert_signal(
        "biosignals", "eeg-1", "EEG", b"\x01\x02", sample_rate=256.0, channels=2
    )
    await arepo.upsert_signal("biosignals", "emg-1", "EMG", b"\x03")

    eeg = list(await arepo.get_signals("biosignals", "EEG"))
    signal = await arepo.get_signal("biosignals", "eeg-1")

    assert [s.id for s in eeg] == ["eeg-1"]
    assert signal is not None
    assert signal.data == b"\x01\x02"
    assert signal.channels == 2
    assert len(list(await arepo.get_signals("biosignals"))) == 2
    assert await arepo.delete_signal("biosignals", "emg-1") is True


@pytest.mark.asyncio
async def test_transaction_commit(arepo: AsyncRepository) -> None:
    await arepo.create_document_table("people")

    async def batch(r: AsyncRepository) -> int:
        await r.upsert("people", "1", {"age": 1})
        await r.upsert("people", "2", {"age": 2})
        return 2

    assert await arepo.execute_in_transaction(batch) == 2
    assert await arepo.count("people") == 2


@pytest.mark.asyncio
async def test_transaction_rollback(arepo: AsyncRepository) -> None:
    await arepo.create_document_table("people")

    async def batch(r: AsyncRepository) -> None:
        await r.upsert("people", "1", {"age": 1})
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await arepo.execute_in_transaction(batch)

    assert list(await arepo.get_all("people")) == []


@pytest.mark.asyncio
async def test_nested_transaction_is_rejected(arepo: AsyncRepository) -> None:
    await arepo.create_document_table("people")

    with pytest.raises(TransactionError):
        async with arepo.transaction() as r:
            await r.upsert("people", "1", {"age": 1})
            async with r.transaction():
                pass

    assert await arepo.count("people") == 0


@pytest.mark.asyncio
async def test_pragmas_applied(arepo: AsyncRepository) -> None:
    conn = arepo.connection

    async with conn.begin():
        assert (await conn.exec_driver_sql("PRAGMA journal_mode")).scalar_one() == "wal"
        assert (await conn.exec_driver_sql("PRAGMA synchronous")).scalar_one() == 1


@pytest.mark.asyncio
async def test_closed_handle(db_path: Path) -> None:
    repo = await AsyncRepository.open(db_path)
    await repo.create_document_table("people")
    await repo.close()
    await repo.close()

    with pytest.raises(ClosedHandleError):
        await repo.get("people", "1")
    with pytest.raises(ClosedHandleError):
        await repo.upsert("people", "1", None)
    with pytest.raises(ClosedHandleError):
        await repo.upsert_signal("signals", "s1", "EEG", b"\x00", metadata=object())


@pytest.mark.asyncio
async def test_open_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "corrupt.db"
    path.write_bytes(b"not a database at all " * 256)

    with pytest.raises(StoreIOError):
        await AsyncRepository.open(path)


@pytest.mark.asyncio
async def test_wrapped_connection_stays_open(db_path: Path) -> None:
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    conn = await engine.connect()
    try:
        repo = await AsyncRepository.wrap(conn)
        await repo.create_document_table("people")
        await repo.upsert("people", "1", {"name": "Alice"})
        await repo.close()

        assert repo.closed
        assert not conn.closed
    finally:
        await conn.close()
        await engine.dispose()


@pytest.mark.asyncio
async def test_tables_created_in_failed_batch_are_rolled_back(arepo: AsyncRepository) -> None:
    async def batch(r: AsyncRepository) -> None:
        await r.create_document_table("drafts")
        await r.upsert("drafts", "1", {"a": 1})
        await r.create_signal_table("captures")
        raise RuntimeError("abort")

    with pytest.raises(RuntimeError, match="abort"):
        await arepo.execute_in_transaction(batch)

    assert not await arepo.table_exists("drafts")
    assert not await arepo.table_exists("captures")


@pytest.mark.asyncio
async def test_commit_failure_raises_transaction_error(arepo: AsyncRepository) -> None:
    await arepo.connection.run_sync(
        lambda sync_conn: add_deferred_foreign_key(sync_conn.connection)
    )
    await arepo.create_document_table("people")

    with pytest.raises(TransactionError) as excinfo:
        async with arepo.transaction() as r:
            await r.upsert("people", "1", {"age": 30})
            await r.connection.exec_driver_sql(
                "INSERT INTO child (id, parent_id) VALUES ('c1', 'missing')"
            )

    assert isinstance(excinfo.value.__cause__, SQLAlchemyError)
    assert not arepo.connection.in_transaction()
    assert await arepo.count("people") == 0
    await arepo.upsert("people", "2", {"age": 40})
    assert await arepo.count("people") == 1


@pytest.mark.asyncio
async def test_record_helpers_raise_deserialization_error(arepo: AsyncRepository) -> None:
    await arepo.create_document_table("people")
    await arepo.create_signal_table("biosignals")
    await arepo.upsert("people", "1", {"name": "Alice"})
    await arepo.upsert_signal("biosignals", "s1", "EKG", b"\x01", metadata="lead II")

    record = await arepo.get_record("people", "1")
    signal = await arepo.get_signal("biosignals", "s1")

    assert record is not None and signal is not None
    with pytest.raises(DeserializationError):
        record.decode(dict[str, int])
    with pytest.raises(DeserializationError) as excinfo:
        signal.metadata_as(dict)
    assert excinfo.value.table == "biosignals"
