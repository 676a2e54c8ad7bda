"""
Shared fixtures for multi-device reconciliation tests.

Every device gets its own data directory (SQLite engine plus file version
cache) and shares one snapshot store, one pointer registry and one
ordering source, the way real clients share IPFS, the registry and the
chain.
"""

import tempfile
from pathlib import Path

import pytest

from dbsync.chaindb.cache import FileVersionCache
from dbsync.chaindb.credentials import StaticCredentialProvider
from dbsync.chaindb.engine import SqliteEngine
from dbsync.chaindb.ordering import LocalOrderingSource
from dbsync.chaindb.reconcile import Reconciler
from dbsync.chaindb.registry import InMemoryPointerRegistry
from dbsync.chaindb.store import InMemorySnapshotStore

OWNER_KEY = "owner-key"
DB_NAME = "todo-db"


class SteppingClock:
    """Advances one second per reading, so every save lands in a later block."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        self.now += 1
        return self.now


@pytest.fixture
def base_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store():
    return InMemorySnapshotStore()


@pytest.fixture
def registry():
    return InMemoryPointerRegistry(owner_key=OWNER_KEY)


@pytest.fixture
def ordering():
    return LocalOrderingSource(clock=SteppingClock())


@pytest.fixture
def make_device(base_dir, store, registry, ordering):
    """Factory: make_device("a") builds a Reconciler for device "a"."""

    def factory(name, key=OWNER_KEY, cache=None, ordering_source=None):
        data_dir = base_dir / name
        return Reconciler(
            snapshot_store=store,
            registry=registry,
            cache=cache or FileVersionCache.for_database(str(data_dir), DB_NAME),
            engine=SqliteEngine(str(data_dir), DB_NAME),
            ordering=ordering_source or ordering,
            credentials=StaticCredentialProvider(key),
        )

    return factory
