"""
Reconciliation module for ChainDB.

This module decides which database version a device runs against and
publishes new versions:
- decide(): the pure conflict policy (local record vs registry record)
- Session: caller-owned handle on local storage and its chain position
- Reconciler: bootstrap, refresh and save over the collaborators
"""

from .policy import Decision, Outcome, Relation, decide, relate
from .reconciler import Reconciler, SaveResult
from .session import LocalState, Session, SessionState, SessionStatus

__all__ = [
    "Decision",
    "LocalState",
    "Outcome",
    "Reconciler",
    "Relation",
    "SaveResult",
    "Session",
    "SessionState",
    "SessionStatus",
    "decide",
    "relate",
]
