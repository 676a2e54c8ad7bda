"""
Local version cache.

Durable storage of exactly one "last known local version record", plus the
registry content id that named it when it was published or adopted.

File format (``<data_dir>/<db_name>.version.json``):
    {"record": {<VersionRecord.to_dict()>}, "record_id": "<content id>" | null}

A bare record object (no wrapper) is also accepted on read.

Invariants:
    - put() replaces the file atomically (write temp file, then rename)
    - An unreadable or corrupt file reads as "no local version", never as an error
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from .chain import VersionRecord
from .errors import MalformedRecordError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedVersion:
    """What the cache holds.

    Attributes:
        record: Last known local VersionRecord
        record_id: Content id of the serialized record, when known
    """

    record: VersionRecord
    record_id: Optional[str] = None


@runtime_checkable
class LocalVersionCache(Protocol):
    def load(self) -> Optional[CachedVersion]:
        ...

    def get(self) -> Optional[VersionRecord]:
        ...

    def put(self, record: VersionRecord, record_id: Optional[str] = None) -> None:
        ...

    def clear(self) -> None:
        ...


class FileVersionCache:
    """JSON-file implementation of LocalVersionCache.

    Example:
        >>> cache = FileVersionCache("/var/lib/chaindb/todo-db.version.json")
        >>> cache.put(record, record_id)
        >>> cache.get() == record
        True
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    @classmethod
    def for_database(cls, data_dir: str, db_name: str) -> FileVersionCache:
        return cls(Path(data_dir) / f"{db_name}.version.json")

    def load(self) -> Optional[CachedVersion]:
        if not self.path.exists():
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if isinstance(data, dict) and "record" in data:
                record = VersionRecord.from_dict(data["record"])
                record_id = data.get("record_id")
                if record_id is not None and not isinstance(record_id, str):
                    raise MalformedRecordError("record_id must be a string", field_name="record_id")
                return CachedVersion(record=record, record_id=record_id)
            return CachedVersion(record=VersionRecord.from_dict(data))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError, MalformedRecordError) as e:
            logger.warning(f"Ignoring unreadable local version cache {self.path}: {e}")
            return None

    def get(self) -> Optional[VersionRecord]:
        cached = self.load()
        return cached.record if cached else None

    def put(self, record: VersionRecord, record_id: Optional[str] = None) -> None:
        payload = json.dumps(
            {"record": record.to_dict(), "record_id": record_id},
            indent=2,
            sort_keys=True,
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.debug(f"Cached local version {record.snapshot_id}")

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


class InMemoryVersionCache:
    """Process-local cache for tests."""

    def __init__(self, initial: Optional[CachedVersion] = None) -> None:
        self._value = initial
        self.put_calls = 0

    def load(self) -> Optional[CachedVersion]:
        return self._value

    def get(self) -> Optional[VersionRecord]:
        return self._value.record if self._value else None

    def put(self, record: VersionRecord, record_id: Optional[str] = None) -> None:
        self.put_calls += 1
        self._value = CachedVersion(record=record, record_id=record_id)

    def clear(self) -> None:
        self._value = None
