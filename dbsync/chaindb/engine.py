"""
Local SQLite engine: the opaque snapshot boundary.

The version-chain core never looks inside a snapshot. It only needs to:
- dump() the whole local database to bytes
- load() bytes fetched from the snapshot store, replacing local storage
- know whether local storage exists()
- reset() local storage to an empty database

Snapshot format:
    gzip(SQLite database file), produced with the SQLite backup API and
    compressed with mtime=0 so identical databases give identical bytes.

Invariants:
    - dump() is consistent (backup API, never a raw file copy)
    - load() is all-or-nothing: bytes are verified in a temp file and then
      renamed over the live database; failure leaves local storage untouched
    - The database file is keyed by the fixed logical database name
"""

from __future__ import annotations

import gzip
import logging
import os
import sqlite3
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol, runtime_checkable

from .errors import CorruptSnapshotError

logger = logging.getLogger(__name__)

_GZIP_MAGIC = b"\x1f\x8b"
_SQLITE_MAGIC = b"SQLite format 3\x00"


@runtime_checkable
class Engine(Protocol):
    def exists(self) -> bool:
        ...

    def dump(self) -> bytes:
        ...

    def load(self, snapshot: bytes) -> None:
        ...

    def reset(self) -> None:
        ...


class SqliteEngine:
    """Engine over one SQLite file per logical database.

    Attributes:
        data_dir: Directory holding the database file
        db_name: Logical database name (file is ``<db_name>.db``)
        busy_timeout_ms: SQLite busy timeout

    Example:
        >>> engine = SqliteEngine("/var/lib/chaindb", "todo-db")
        >>> snapshot = engine.dump()
        >>> other.load(snapshot)
    """

    def __init__(
        self,
        data_dir: str,
        db_name: str,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.db_name = db_name
        self.busy_timeout_ms = busy_timeout_ms

    @property
    def db_path(self) -> Path:
        # Sanitize db_name to prevent path traversal
        safe_name = "".join(c for c in self.db_name if c.isalnum() or c in "-_")
        return self.data_dir / f"{safe_name}.db"

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open the local database, creating it if needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        finally:
            conn.close()

    def exists(self) -> bool:
        return self.db_path.exists()

    def dump(self) -> bytes:
        """Snapshot the local database.

        An absent database dumps as an empty one.
        """
        raw = b""
        if self.exists():
            with tempfile.TemporaryDirectory() as tmpdir:
                tmp_path = Path(tmpdir) / "snapshot.db"
                self._backup_database(str(self.db_path), str(tmp_path))
                raw = tmp_path.read_bytes()

        snapshot = gzip.compress(raw, mtime=0)
        logger.debug(
            "Dumped local database",
            extra={"db_name": self.db_name, "raw_bytes": len(raw), "snapshot_bytes": len(snapshot)},
        )
        return snapshot

    def load(self, snapshot: bytes) -> None:
        """Replace local storage with a snapshot.

        Raises:
            CorruptSnapshotError: If the bytes are not a valid SQLite database
        """
        raw = self._decompress(snapshot)
        if raw and not raw.startswith(_SQLITE_MAGIC):
            raise CorruptSnapshotError("Snapshot is not a SQLite database")

        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.db_name}.", suffix=".load", dir=str(self.data_dir))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(raw)
            self._verify_database(tmp_name)
            self._remove_sidecars()
            os.replace(tmp_name, self.db_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info(
            "Loaded snapshot into local storage",
            extra={"db_name": self.db_name, "raw_bytes": len(raw)},
        )

    def reset(self) -> None:
        """Discard local storage; the next connect() starts an empty database."""
        self._remove_sidecars()
        if self.db_path.exists():
            self.db_path.unlink()
        logger.info(f"Cleared local database {self.db_name}")

    def _decompress(self, snapshot: bytes) -> bytes:
        if not snapshot.startswith(_GZIP_MAGIC):
            return snapshot
        try:
            return gzip.decompress(snapshot)
        except (OSError, EOFError) as e:
            raise CorruptSnapshotError(f"Snapshot could not be decompressed: {e}")

    def _remove_sidecars(self) -> None:
        for suffix in ("-wal", "-shm", "-journal"):
            sidecar = self.db_path.with_name(self.db_path.name + suffix)
            if sidecar.exists():
                sidecar.unlink()

    def _backup_database(self, source_path: str, dest_path: str) -> None:
        """Create consistent database backup using SQLite backup API."""
        source_conn = sqlite3.connect(source_path)
        dest_conn = sqlite3.connect(dest_path)

        try:
            source_conn.backup(dest_conn)
        finally:
            source_conn.close()
            dest_conn.close()

    def _verify_database(self, db_path: str) -> None:
        """Verify database integrity."""
        try:
            conn = sqlite3.connect(db_path)
            try:
                result = conn.execute("PRAGMA integrity_check").fetchone()[0]
            finally:
                conn.close()
        except sqlite3.DatabaseError as e:
            raise CorruptSnapshotError(f"Snapshot failed to open: {e}")
        if result != "ok":
            raise CorruptSnapshotError(f"Snapshot integrity check failed: {result}")
