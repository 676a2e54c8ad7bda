"""
Integration tests for todo rows on top of a session.

Tests cover:
- CRUD through TodoRepository
- Dirty tracking for every mutation
- Failed mutations roll back as a whole
- Rows travelling with published snapshots
"""

import sqlite3

import pytest

from dbsync.chaindb import todos as todos_module
from dbsync.chaindb.todos import Todo, TodoRepository


class TestTodoRepository:
    """Tests for TodoRepository."""

    @pytest.fixture
    def device(self, make_device):
        return make_device("a")

    @pytest.mark.asyncio
    async def test_list_empty_does_not_create_database(self, device):
        session = await device.bootstrap()
        assert await TodoRepository(session).list() == []
        assert not session.engine.exists()
        assert session.dirty is False

    @pytest.mark.asyncio
    async def test_add_and_list(self, device):
        session = await device.bootstrap()
        todos = TodoRepository(session)

        first = await todos.add("Write docs")
        await todos.add("  Ship it  ")

        assert first == Todo(id=1, task="Write docs", done=False)
        assert [t.task for t in await todos.list()] == ["Write docs", "Ship it"]
        assert session.dirty is True
        assert session.edit_count == 2

    @pytest.mark.asyncio
    async def test_blank_task_rejected(self, device):
        session = await device.bootstrap()
        with pytest.raises(ValueError):
            await TodoRepository(session).add("   ")

        assert session.dirty is False

    @pytest.mark.asyncio
    async def test_failed_add_leaves_database_and_session_unchanged(self, device, monkeypatch):
        session = await device.bootstrap()
        with session.engine.connect() as conn:
            conn.execute("CREATE TABLE notes (body TEXT)")
        monkeypatch.setattr(todos_module, "_INSERT", "INSERT INTO todo (no_such_column) VALUES (?)")

        with pytest.raises(sqlite3.OperationalError):
            await TodoRepository(session).add("Write docs")

        with session.engine.connect() as conn:
            tables = [row["name"] for row in conn.execute("SELECT name FROM sqlite_master")]
        assert "todo" not in tables
        assert session.dirty is False
        assert session.edit_count == 0

    @pytest.mark.asyncio
    async def test_set_done_and_undo(self, device):
        session = await device.bootstrap()
        todos = TodoRepository(session)
        item = await todos.add("Write docs")

        assert await todos.set_done(item.id)
        assert (await todos.list())[0].done is True

        assert await todos.set_done(item.id, done=False)
        assert (await todos.list())[0].done is False

    @pytest.mark.asyncio
    async def test_delete(self, device):
        session = await device.bootstrap()
        todos = TodoRepository(session)
        item = await todos.add("Write docs")

        assert await todos.delete(item.id)
        assert await todos.list() == []

    @pytest.mark.asyncio
    async def test_missing_rows(self, device):
        session = await device.bootstrap()
        todos = TodoRepository(session)

        assert await todos.set_done(99) is False
        assert await todos.delete(99) is False

    @pytest.mark.asyncio
    async def test_to_dict(self):
        assert Todo(1, "x", True).to_dict() == {"id": 1, "task": "x", "done": True}


class TestTodosAcrossDevices:
    @pytest.mark.asyncio
    async def test_done_flag_travels_with_snapshot(self, make_device):
        a = make_device("a")
        session_a = await a.bootstrap()
        todos_a = TodoRepository(session_a)
        item = await todos_a.add("Pay rent")
        await todos_a.set_done(item.id)
        await a.save(session_a, ["Pay rent"])

        session_b = await make_device("b").bootstrap()

        assert await TodoRepository(session_b).list() == [Todo(id=item.id, task="Pay rent", done=True)]
