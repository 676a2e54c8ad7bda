"""
Todo rows: the application data carried inside each snapshot.

The version chain treats the database as opaque bytes; this module is the
one place that knows its schema. Every mutation runs inside
Session.edit(), so it marks the session dirty and never interleaves with
a save's dump. Each mutation is one transaction: a failed edit leaves the
database unchanged and the session clean.

Schema:
    todo(id INTEGER PRIMARY KEY AUTOINCREMENT, task TEXT NOT NULL,
         done BOOLEAN NOT NULL DEFAULT 0)
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from .reconcile import Session

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS todo (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    task TEXT NOT NULL,
    done BOOLEAN NOT NULL DEFAULT 0
)
"""

_INSERT = "INSERT INTO todo (task) VALUES (?)"


@contextmanager
def _transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
        conn.execute("COMMIT")
    except BaseException:
        conn.execute("ROLLBACK")
        raise


@dataclass(frozen=True)
class Todo:
    """One todo row."""

    id: int
    task: str
    done: bool

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "task": self.task, "done": self.done}


class TodoRepository:
    """Reads and edits todo rows through a session.

    Example:
        >>> todos = TodoRepository(session)
        >>> item = await todos.add("Write release notes")
        >>> await todos.set_done(item.id)
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    async def add(self, task: str) -> Todo:
        """Insert a todo.

        Raises:
            ValueError: If task is blank
        """
        task = task.strip()
        if not task:
            raise ValueError("Task must not be empty")

        async with self.session.edit() as engine:
            with engine.connect() as conn, _transaction(conn):
                conn.execute(_CREATE_TABLE)
                cursor = conn.execute(_INSERT, (task,))
                todo_id = cursor.lastrowid

        logger.debug(f"Added todo {todo_id}")
        return Todo(id=todo_id, task=task, done=False)

    async def set_done(self, todo_id: int, done: bool = True) -> bool:
        """Mark a todo done (or not done). Returns False if it does not exist."""
        return await self._mutate("UPDATE todo SET done = ? WHERE id = ?", (int(done), todo_id))

    async def delete(self, todo_id: int) -> bool:
        """Delete a todo. Returns False if it does not exist."""
        return await self._mutate("DELETE FROM todo WHERE id = ?", (todo_id,))

    async def list(self) -> list[Todo]:
        # Reading must not create the database file: an empty file would
        # later look like local data of unknown origin.
        if not self.session.engine.exists():
            return []

        with self.session.engine.connect() as conn:
            try:
                rows = conn.execute("SELECT id, task, done FROM todo ORDER BY id").fetchall()
            except sqlite3.OperationalError:
                # table not created yet
                return []
        return [Todo(id=row["id"], task=row["task"], done=bool(row["done"])) for row in rows]

    async def _mutate(self, sql: str, params: tuple) -> bool:
        if not self.session.engine.exists():
            return False

        async with self.session.edit() as engine:
            with engine.connect() as conn, _transaction(conn):
                conn.execute(_CREATE_TABLE)
                changed = conn.execute(sql, params).rowcount
        return changed > 0
