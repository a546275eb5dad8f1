"""
tests.conftest

Shared fixtures: a fresh database file per test and repositories opened on it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
import pytest_asyncio

from jsonb_store import AsyncRepository, Repository


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "store.db"


@pytest.fixture
def repo(db_path: Path) -> Iterator[Repository]:
    with Repository.open(db_path) as r:
        yield r


@pytest_asyncio.fixture
async def arepo(db_path: Path) -> AsyncIterator[AsyncRepository]:
    async with await AsyncRepository.open(db_path) as r:
        yield r
