"""
SQLite-backed pointer registry.

Models the registry as a single database row per named pointer, with an
append-only history table beside it. This is the backend the registry HTTP
service runs on; it is also usable directly when all clients share a
filesystem.

Table schema:
    pointers:
        - name TEXT PRIMARY KEY
        - content_id TEXT NOT NULL
        - updated_at INTEGER (Unix ms)

    pointer_history:
        - name TEXT
        - content_id TEXT
        - previous TEXT
        - written_at INTEGER (Unix ms)

Invariants:
    - Compare-and-set runs inside one IMMEDIATE transaction
    - History rows are only ever inserted
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import ConflictError, TransientError, UnauthorizedError
from .base import ANY, Expected, key_matches

logger = logging.getLogger(__name__)


class SqlitePointerRegistry:
    """Named pointer slots stored in a SQLite file.

    Attributes:
        db_path: Path to the SQLite database
        name: Pointer slot this instance reads and writes
        owner_key: Key that write() accepts

    Example:
        >>> registry = SqlitePointerRegistry("/var/lib/chaindb/registry.db", "todo-db", key)
        >>> await registry.write(record_id, credential=key, expected=None)
        >>> await registry.read()
        'sha256:...'
    """

    def __init__(
        self,
        db_path: str,
        name: str,
        owner_key: Optional[str],
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.db_path = Path(db_path)
        self.name = name
        self.owner_key = owner_key
        self.busy_timeout_ms = busy_timeout_ms
        self._initialized = False

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if not self._initialized:
                self._create_schema(conn)
                self._initialized = True
            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS pointers (
                name TEXT PRIMARY KEY,
                content_id TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS pointer_history (
                name TEXT NOT NULL,
                content_id TEXT NOT NULL,
                previous TEXT,
                written_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_pointer_history_name
                ON pointer_history(name, written_at);
        """)

    async def read(self) -> Optional[str]:
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT content_id FROM pointers WHERE name = ?", (self.name,)
                ).fetchone()
        except sqlite3.Error as e:
            raise TransientError(f"Registry read failed: {e}", collaborator="sqlite")
        return row["content_id"] if row else None

    async def write(
        self,
        content_id: str,
        *,
        credential: str,
        expected: Expected = ANY,
    ) -> None:
        if not key_matches(credential, self.owner_key):
            raise UnauthorizedError("Credential is not authorized to write this registry")

        now = int(time.time() * 1000)
        try:
            with self._get_connection() as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    row = conn.execute(
                        "SELECT content_id FROM pointers WHERE name = ?", (self.name,)
                    ).fetchone()
                    current = row["content_id"] if row else None

                    if expected is not ANY and expected != current:
                        raise ConflictError(
                            f"Registry pointer '{self.name}' moved since it was read",
                            expected=expected,
                            actual=current,
                        )

                    conn.execute(
                        """
                        INSERT INTO pointers (name, content_id, updated_at)
                        VALUES (?, ?, ?)
                        ON CONFLICT(name) DO UPDATE SET
                            content_id = excluded.content_id,
                            updated_at = excluded.updated_at
                        """,
                        (self.name, content_id, now),
                    )
                    conn.execute(
                        """
                        INSERT INTO pointer_history (name, content_id, previous, written_at)
                        VALUES (?, ?, ?, ?)
                        """,
                        (self.name, content_id, current, now),
                    )
                    conn.execute("COMMIT")
                except BaseException:
                    conn.execute("ROLLBACK")
                    raise
        except sqlite3.Error as e:
            raise TransientError(f"Registry write failed: {e}", collaborator="sqlite")

        logger.info(
            "Registry pointer updated",
            extra={"pointer": self.name, "content_id": content_id},
        )

    async def history(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Return past writes for this pointer, newest first."""
        try:
            with self._get_connection() as conn:
                rows = conn.execute(
                    """
                    SELECT content_id, previous, written_at FROM pointer_history
                    WHERE name = ? ORDER BY written_at DESC, rowid DESC LIMIT ?
                    """,
                    (self.name, limit),
                ).fetchall()
        except sqlite3.Error as e:
            raise TransientError(f"Registry history read failed: {e}", collaborator="sqlite")
        return [dict(row) for row in rows]

    def for_name(self, name: str) -> SqlitePointerRegistry:
        """Same database and key, different pointer slot."""
        other = SqlitePointerRegistry(
            db_path=str(self.db_path),
            name=name,
            owner_key=self.owner_key,
            busy_timeout_ms=self.busy_timeout_ms,
        )
        other._initialized = self._initialized
        return other

    async def close(self) -> None:
        """No-op; connections are opened per operation."""
