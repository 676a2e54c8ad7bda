"""
Construction and validation of version chains.

A chain is a simple path of VersionRecords from the current head back to a
root whose ``prev`` is None. Links are expressed as the predecessor's
snapshot id, so walking a chain needs a resolver that maps a snapshot id back
to the record that produced it (see RecordIndex).

Everything here is a pure function over its inputs; no process state is held.

Invariants:
    - chain_seq is strictly increasing from root to head
    - Forks are never merged; a record has at most one predecessor
    - Every walk is bounded by max_depth, so a malformed or cyclic chain
      fails with ChainTooDeepError instead of looping
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Iterable, Iterator, Optional

from ..errors import ChainTooDeepError, InvalidOrderingError
from .record import VersionRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 1000

Resolver = Callable[[str], Optional[VersionRecord]]


def create_record(
    snapshot_id: str,
    prev_record: Optional[VersionRecord],
    chain_seq: int,
    chain_time: int,
    change_log: Iterable[str] = (),
    *,
    created_at: Optional[int] = None,
) -> VersionRecord:
    """Build the record that follows ``prev_record``.

    Args:
        snapshot_id: Content id of the uploaded snapshot
        prev_record: Record being superseded, or None for a root
        chain_seq: Block number fetched at save time
        chain_time: Block timestamp fetched at save time
        change_log: Optional human-readable change descriptions
        created_at: Client wall clock (Unix ms); defaults to now

    Returns:
        New immutable VersionRecord

    Raises:
        InvalidOrderingError: If chain_seq does not advance past prev_record
    """
    if prev_record is not None and chain_seq <= prev_record.chain_seq:
        raise InvalidOrderingError(
            f"chain_seq {chain_seq} must be greater than predecessor's {prev_record.chain_seq}",
            chain_seq=chain_seq,
            prev_chain_seq=prev_record.chain_seq,
        )

    return VersionRecord(
        snapshot_id=snapshot_id,
        created_at=created_at if created_at is not None else int(time.time() * 1000),
        chain_seq=chain_seq,
        chain_time=chain_time,
        prev=prev_record.snapshot_id if prev_record is not None else None,
        change_log=tuple(change_log),
    )


def iter_lineage(
    head: VersionRecord,
    resolve: Resolver,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Iterator[VersionRecord]:
    """Yield ``head`` and then each resolvable predecessor, newest first.

    The walk stops at a root, or at the first link the resolver cannot
    satisfy. A record whose prev resolves to itself (the same snapshot
    saved again) counts as unsatisfied.

    Raises:
        ChainTooDeepError: If more than max_depth links are followed
    """
    current: Optional[VersionRecord] = head
    depth = 0
    while current is not None:
        yield current
        if current.prev is None:
            return
        depth += 1
        if depth > max_depth:
            raise ChainTooDeepError(
                f"Lineage of {head.snapshot_id} exceeds {max_depth} links",
                max_depth=max_depth,
            )
        previous = resolve(current.prev)
        if previous == current:
            return
        current = previous


def is_descendant(
    candidate: VersionRecord,
    ancestor: VersionRecord,
    resolve: Resolver,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> bool:
    """Whether ``ancestor`` appears strictly before ``candidate`` in its lineage.

    A record is not its own descendant. Links the resolver cannot satisfy
    end the walk with False, since ancestry cannot be proven.

    Raises:
        ChainTooDeepError: If the walk exceeds max_depth links
    """
    # matching on prev lets the last link prove ancestry without resolving it
    for record in iter_lineage(candidate, resolve, max_depth):
        if record.prev == ancestor.snapshot_id:
            return True
    return False


def validate_chain(
    head: VersionRecord,
    resolve: Resolver,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> int:
    """Check strict chain_seq ordering along the resolvable lineage of ``head``.

    Returns:
        Number of records checked

    Raises:
        InvalidOrderingError: If any record does not advance past its predecessor
        ChainTooDeepError: If the walk exceeds max_depth links
    """
    checked = 0
    newer: Optional[VersionRecord] = None
    for record in iter_lineage(head, resolve, max_depth):
        if newer is not None and newer.chain_seq <= record.chain_seq:
            raise InvalidOrderingError(
                f"Record {newer.snapshot_id} (seq {newer.chain_seq}) does not follow "
                f"{record.snapshot_id} (seq {record.chain_seq})",
                chain_seq=newer.chain_seq,
                prev_chain_seq=record.chain_seq,
            )
        newer = record
        checked += 1
    return checked


class RecordIndex:
    """In-memory map from snapshot id to the record that produced it.

    Callable, so an instance can be passed wherever a resolver is expected.

    Example:
        >>> index = RecordIndex([root, child])
        >>> is_descendant(child, root, index)
        True
    """

    def __init__(self, records: Iterable[VersionRecord] = ()) -> None:
        self._records: Dict[str, VersionRecord] = {}
        for record in records:
            self.add(record)

    def add(self, record: Optional[VersionRecord]) -> None:
        if record is None:
            return
        existing = self._records.get(record.snapshot_id)
        if existing is not None and existing != record:
            # same data published twice; keep the first record seen
            logger.debug(f"Ignoring duplicate record for {record.snapshot_id}")
            return
        self._records[record.snapshot_id] = record

    def get(self, snapshot_id: str) -> Optional[VersionRecord]:
        return self._records.get(snapshot_id)

    def __call__(self, snapshot_id: str) -> Optional[VersionRecord]:
        return self._records.get(snapshot_id)

    def __contains__(self, snapshot_id: object) -> bool:
        return snapshot_id in self._records

    def __len__(self) -> int:
        return len(self._records)
