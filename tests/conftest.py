"""Shared fixtures for agenda tests."""

import sys
from pathlib import Path

import pytest

# Ensure the package is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

from agenda.storage import MemoryStorage, SQLiteStorage
from agenda.store import Store


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return Store(storage)


@pytest.fixture
def sqlite_store(tmp_path):
    return Store(SQLiteStorage(str(tmp_path / "agenda.db")))


@pytest.fixture
def alice(store):
    return store.register("alice", "pw1")


@pytest.fixture
def bob(store):
    return store.register("bob", "pw2")
