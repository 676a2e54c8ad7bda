"""
Unit tests for the local version cache.

Tests cover:
- Durable put/get across instances
- Tolerance of corrupt or foreign files
- Atomic replacement
"""

import json
import tempfile
from pathlib import Path

import pytest

from dbsync.chaindb.cache import CachedVersion, FileVersionCache, InMemoryVersionCache
from dbsync.chaindb.chain import VersionRecord


@pytest.fixture
def record():
    return VersionRecord("snap-1", 1000, 5, 100, prev="snap-0", change_log=("Add",))


class TestFileVersionCache:
    """Tests for FileVersionCache."""

    @pytest.fixture
    def data_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def cache(self, data_dir):
        return FileVersionCache.for_database(data_dir, "todo-db")

    def test_empty_cache(self, cache):
        assert cache.load() is None
        assert cache.get() is None

    def test_path_keyed_by_database_name(self, cache, data_dir):
        assert cache.path == Path(data_dir) / "todo-db.version.json"

    def test_put_then_load(self, cache, record):
        cache.put(record, "rec-1")

        assert cache.load() == CachedVersion(record=record, record_id="rec-1")
        assert cache.get() == record

    def test_durable_across_instances(self, cache, data_dir, record):
        cache.put(record, "rec-1")

        reopened = FileVersionCache.for_database(data_dir, "todo-db")

        assert reopened.get() == record

    def test_put_replaces_previous(self, cache, record):
        newer = VersionRecord("snap-2", 2000, 6, 200, prev="snap-1")

        cache.put(record, "rec-1")
        cache.put(newer)

        assert cache.load() == CachedVersion(record=newer, record_id=None)

    def test_no_temp_files_left(self, cache, data_dir, record):
        cache.put(record, "rec-1")
        cache.put(record, "rec-1")

        assert sorted(p.name for p in Path(data_dir).iterdir()) == ["todo-db.version.json"]

    def test_bare_record_accepted(self, cache, record):
        cache.path.parent.mkdir(parents=True, exist_ok=True)
        cache.path.write_text(json.dumps(record.to_dict()))

        assert cache.load() == CachedVersion(record=record, record_id=None)

    @pytest.mark.parametrize(
        "content",
        [
            "not json {",
            json.dumps({"record": {"cid": "x"}}),
            json.dumps({"record": {"cid": "x", "timestamp": 1, "blockNumber": 2,
                                   "blockTimestamp": 3}, "record_id": 7}),
            json.dumps([1, 2]),
        ],
    )
    def test_corrupt_file_reads_as_empty(self, cache, content):
        cache.path.parent.mkdir(parents=True, exist_ok=True)
        cache.path.write_text(content)

        assert cache.load() is None

    def test_clear(self, cache, record):
        cache.put(record)
        cache.clear()
        cache.clear()

        assert cache.get() is None


class TestInMemoryVersionCache:
    def test_put_get_clear(self, record):
        cache = InMemoryVersionCache()

        cache.put(record, "rec-1")
        assert cache.load().record_id == "rec-1"
        assert cache.put_calls == 1

        cache.clear()
        assert cache.get() is None

    def test_initial_value(self, record):
        cache = InMemoryVersionCache(CachedVersion(record))
        assert cache.get() == record
