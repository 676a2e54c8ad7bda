"""
Unit tests for Session and SessionStatus.

Tests cover:
- Presentation-layer status strings
- Edits marking the session dirty
- Edits serialized against the dump boundary
"""

import asyncio
import tempfile

import pytest

from dbsync.chaindb.engine import SqliteEngine
from dbsync.chaindb.reconcile import LocalState, Session, SessionState, SessionStatus
from dbsync.chaindb.registry import ANY


@pytest.fixture
def session():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Session(SqliteEngine(tmpdir, "todo-db"))


class TestSessionStatus:
    def test_strings(self):
        assert str(SessionStatus.loading()) == "loading"
        assert str(SessionStatus.saving()) == "saving"
        assert str(SessionStatus.ready(dirty=False)) == "ready"
        assert str(SessionStatus.ready(dirty=True)) == "ready (unsaved changes)"
        assert (
            str(SessionStatus.ready(dirty=True, unknown_origin=True))
            == "ready (local changes of unknown origin)"
        )
        assert str(SessionStatus.error("CONFLICT")) == "error (CONFLICT)"


class TestSession:
    def test_starts_loading(self, session):
        assert session.status == SessionStatus.loading()
        assert session.state == LocalState()
        assert session.observed_pointer is ANY

    @pytest.mark.asyncio
    async def test_edit_marks_dirty(self, session):
        session._set_phase(SessionState.READY)

        async with session.edit() as engine:
            with engine.connect() as conn:
                conn.execute("CREATE TABLE t (x)")

        assert session.dirty is True
        assert session.edit_count == 1
        assert session.status == SessionStatus.ready(dirty=True)

    @pytest.mark.asyncio
    async def test_failed_edit_is_not_counted(self, session):
        with pytest.raises(RuntimeError):
            async with session.edit():
                raise RuntimeError("boom")

        assert session.dirty is False
        assert session.edit_count == 0

    @pytest.mark.asyncio
    async def test_edit_waits_for_frozen_section(self, session):
        order = []

        async def edit():
            async with session.edit():
                order.append("edit")

        async with session._frozen():
            task = asyncio.create_task(edit())
            await asyncio.sleep(0)
            order.append("dump")

        await task
        assert order == ["dump", "edit"]

    def test_repr(self, session):
        assert "record=None" in repr(session)
