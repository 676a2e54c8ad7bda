"""
Session: the explicit, caller-owned handle on the local database.

A Session is produced by Reconciler.bootstrap() and replaces any notion of a
process-wide database handle. It owns the local engine, the current
LocalState and the locks that keep edits, saves and refreshes from
interleaving.

Invariants:
    - LocalState is immutable; it is replaced wholesale, never patched
    - Edits run under the edit lock, so a save's dump sees each edit
      entirely or not at all
    - Saves and refreshes run one at a time per session (phase lock)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from ..chain import VersionRecord
from ..engine import Engine
from ..registry.base import ANY, Expected
from .policy import Outcome

logger = logging.getLogger(__name__)


class SessionState(Enum):
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"
    ERROR = "error"


@dataclass(frozen=True)
class SessionStatus:
    """User-facing state exposed to the presentation layer.

    Attributes:
        state: loading / ready / saving / error
        dirty: Local edits not yet published (ready only)
        unknown_origin: Local data of unknown provenance (ready only)
        error_kind: Error code of the failure (error only)
    """

    state: SessionState
    dirty: bool = False
    unknown_origin: bool = False
    error_kind: Optional[str] = None

    @classmethod
    def loading(cls) -> SessionStatus:
        return cls(SessionState.LOADING)

    @classmethod
    def ready(cls, dirty: bool, unknown_origin: bool = False) -> SessionStatus:
        return cls(SessionState.READY, dirty=dirty, unknown_origin=unknown_origin)

    @classmethod
    def saving(cls) -> SessionStatus:
        return cls(SessionState.SAVING)

    @classmethod
    def error(cls, kind: str) -> SessionStatus:
        return cls(SessionState.ERROR, error_kind=kind)

    def __str__(self) -> str:
        if self.state == SessionState.READY:
            if self.unknown_origin:
                return "ready (local changes of unknown origin)"
            return "ready (unsaved changes)" if self.dirty else "ready"
        if self.state == SessionState.ERROR:
            return f"error ({self.error_kind})"
        return self.state.value


@dataclass(frozen=True)
class LocalState:
    """Everything the session knows about its position in the chain.

    Attributes:
        effective_record: Record the local database corresponds to, if any
        effective_record_id: Content id naming effective_record, when known
        observed_pointer: Registry value the next save expects to replace
        dirty: Local edits since effective_record was established
        unknown_origin: Local data with no recorded provenance
    """

    effective_record: Optional[VersionRecord] = None
    effective_record_id: Optional[str] = None
    observed_pointer: Expected = ANY
    dirty: bool = False
    unknown_origin: bool = False


class Session:
    """Working session against one local database.

    Example:
        >>> session = await reconciler.bootstrap()
        >>> async with session.edit() as engine:
        ...     with engine.connect() as conn:
        ...         conn.execute("INSERT INTO todo (task) VALUES (?)", ("write docs",))
        >>> await reconciler.save(session, ["Add todo"])
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._state = LocalState()
        self._phase_state: SessionState = SessionState.LOADING
        self._error_kind: Optional[str] = None
        self._edit_count = 0
        self._edit_lock = asyncio.Lock()
        self._phase_lock = asyncio.Lock()
        self.outcome: Optional[Outcome] = None
        self.last_error: Optional[BaseException] = None

    @property
    def state(self) -> LocalState:
        return self._state

    @property
    def effective_record(self) -> Optional[VersionRecord]:
        return self._state.effective_record

    @property
    def effective_record_id(self) -> Optional[str]:
        return self._state.effective_record_id

    @property
    def observed_pointer(self) -> Expected:
        return self._state.observed_pointer

    @property
    def dirty(self) -> bool:
        return self._state.dirty

    @property
    def unknown_origin(self) -> bool:
        return self._state.unknown_origin

    @property
    def edit_count(self) -> int:
        """Number of completed edits; save compares it across the dump boundary."""
        return self._edit_count

    @property
    def status(self) -> SessionStatus:
        if self._phase_state == SessionState.READY:
            return SessionStatus.ready(self._state.dirty, self._state.unknown_origin)
        if self._phase_state == SessionState.ERROR:
            return SessionStatus.error(self._error_kind or "UNKNOWN")
        return SessionStatus(self._phase_state)

    @asynccontextmanager
    async def edit(self) -> AsyncIterator[Engine]:
        """Run a local mutation and mark the session dirty when it completes."""
        async with self._edit_lock:
            yield self.engine
            self._edit_count += 1
            if not self._state.dirty:
                self._replace_state(replace(self._state, dirty=True))

    # Used by Reconciler

    @asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        async with self._phase_lock:
            yield

    @asynccontextmanager
    async def _frozen(self) -> AsyncIterator[None]:
        """Hold off edits (the dump boundary)."""
        async with self._edit_lock:
            yield

    def _replace_state(self, state: LocalState) -> None:
        self._state = state

    def _set_phase(self, phase: SessionState, error_kind: Optional[str] = None) -> None:
        self._phase_state = phase
        self._error_kind = error_kind

    def __repr__(self) -> str:
        record = self._state.effective_record
        return (
            f"Session(record={record.snapshot_id if record else None}, "
            f"status={self.status})"
        )
