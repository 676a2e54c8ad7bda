"""
The reconciliation decision procedure.

Given the local version record (from the local cache), the remote record
(resolved through the pointer registry) and whether local storage exists,
decide which snapshot the session runs against. This is the single
authoritative conflict policy; it does no I/O and is tested on its own.

Decision order:
    1. remote absent, no local storage      -> FRESH_EMPTY
       remote absent, local storage present -> UNPUBLISHED (keep local, dirty)
    2. no local storage                     -> ADOPT_REMOTE
    3. local storage but no local record    -> UNKNOWN_ORIGIN (keep local, dirty)
    4. same snapshot id                     -> IN_SYNC
    5. remote.chain_time >= local.chain_time -> REMOTE_NEWER (adopt remote)
       otherwise                            -> LOCAL_AHEAD (keep local, dirty)

Invariants:
    - Ties on chain_time go to remote, so every client reading the same
      registry value converges on it
    - Ancestry (fast-forward) is diagnostic only and never changes the outcome
    - Records with equal snapshot ids are in sync whatever their metadata
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..chain import DEFAULT_MAX_DEPTH, RecordIndex, VersionRecord, is_descendant
from ..chain.version_chain import Resolver
from ..errors import ChainTooDeepError

logger = logging.getLogger(__name__)


class Outcome(Enum):
    FRESH_EMPTY = "fresh_empty"
    UNPUBLISHED = "unpublished"
    ADOPT_REMOTE = "adopt_remote"
    UNKNOWN_ORIGIN = "unknown_origin"
    IN_SYNC = "in_sync"
    REMOTE_NEWER = "remote_newer"
    LOCAL_AHEAD = "local_ahead"


class Relation(Enum):
    """How the local and remote records are related by ancestry."""

    NOT_APPLICABLE = "not_applicable"
    SAME = "same"
    REMOTE_DESCENDS = "remote_descends"  # remote is a fast-forward of local
    LOCAL_DESCENDS = "local_descends"  # local is a fast-forward of remote
    DIVERGED = "diverged"  # no ancestry found; a fork or unknown lineage


@dataclass(frozen=True)
class Decision:
    """Result of decide().

    Attributes:
        outcome: Which branch of the procedure applied
        effective: Record the session should run against, if any
        dirty: Whether local state is ahead of what is published
        unknown_origin: Local data exists with no recorded provenance
        relation: Ancestry diagnostic
    """

    outcome: Outcome
    effective: Optional[VersionRecord]
    dirty: bool
    unknown_origin: bool = False
    relation: Relation = Relation.NOT_APPLICABLE

    @property
    def adopts_remote(self) -> bool:
        """Whether local storage must be replaced by the remote snapshot."""
        return self.outcome in (Outcome.ADOPT_REMOTE, Outcome.REMOTE_NEWER)


def decide(
    local_record: Optional[VersionRecord],
    remote_record: Optional[VersionRecord],
    local_snapshot_present: bool,
    resolve: Optional[Resolver] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Decision:
    """Choose the effective record for a session.

    Args:
        local_record: Last known local record, or None
        remote_record: Record the registry currently points at, or None
        local_snapshot_present: Whether local storage exists on this device
        resolve: Optional snapshot id -> record resolver for ancestry diagnostics
        max_depth: Bound on ancestry walks

    Returns:
        Decision describing the effective record and dirty flag
    """
    if remote_record is None:
        if not local_snapshot_present:
            return Decision(Outcome.FRESH_EMPTY, effective=None, dirty=False)
        return Decision(
            Outcome.UNPUBLISHED,
            effective=local_record,
            dirty=True,
            unknown_origin=local_record is None,
        )

    if not local_snapshot_present:
        return Decision(Outcome.ADOPT_REMOTE, effective=remote_record, dirty=False)

    if local_record is None:
        return Decision(Outcome.UNKNOWN_ORIGIN, effective=None, dirty=True, unknown_origin=True)

    if local_record.same_data(remote_record):
        return Decision(Outcome.IN_SYNC, effective=local_record, dirty=False, relation=Relation.SAME)

    relation = relate(local_record, remote_record, resolve, max_depth)

    if remote_record.chain_time >= local_record.chain_time:
        decision = Decision(
            Outcome.REMOTE_NEWER, effective=remote_record, dirty=False, relation=relation
        )
    else:
        decision = Decision(
            Outcome.LOCAL_AHEAD, effective=local_record, dirty=True, relation=relation
        )

    if relation == Relation.DIVERGED:
        logger.info(
            "Local and remote versions diverged; resolving by chain time",
            extra={
                "local": local_record.snapshot_id,
                "remote": remote_record.snapshot_id,
                "outcome": decision.outcome.value,
            },
        )
    elif (relation == Relation.REMOTE_DESCENDS) != (decision.outcome == Outcome.REMOTE_NEWER):
        # ancestry and chain time disagree, e.g. a publisher with a bad ordering source
        logger.warning(
            "Chain time contradicts version ancestry",
            extra={
                "local": local_record.snapshot_id,
                "remote": remote_record.snapshot_id,
                "relation": relation.value,
                "outcome": decision.outcome.value,
            },
        )
    return decision


def relate(
    local_record: VersionRecord,
    remote_record: VersionRecord,
    resolve: Optional[Resolver] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Relation:
    """Classify two records by ancestry.

    Without a resolver only direct parent links are visible.
    """
    if local_record.same_data(remote_record):
        return Relation.SAME

    index = RecordIndex([local_record, remote_record])

    def lookup(snapshot_id: str) -> Optional[VersionRecord]:
        found = resolve(snapshot_id) if resolve is not None else None
        return found if found is not None else index(snapshot_id)

    try:
        if is_descendant(remote_record, local_record, lookup, max_depth):
            return Relation.REMOTE_DESCENDS
        if is_descendant(local_record, remote_record, lookup, max_depth):
            return Relation.LOCAL_DESCENDS
    except ChainTooDeepError as e:
        logger.warning(f"Ancestry check abandoned: {e}")
    return Relation.DIVERGED
