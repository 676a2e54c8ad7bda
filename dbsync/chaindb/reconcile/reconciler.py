"""
Reconciler: drives bootstrap and save against the four collaborators.

Bootstrap:
    1. Read the registry pointer
    2. Fetch and parse the remote VersionRecord from the snapshot store
    3. Read the local version cache and check for local storage
    4. Apply policy.decide() and its side effects (adopt remote: replace
       local storage and cache the remote record)

Save:
    1. Require a credential
    2. Dump local storage (edits held off for the dump only)
    3. Upload the snapshot
    4. Build the next record from a freshly fetched chain tick
    5. Upload the record
    6. Advance the registry (compare-and-set against the observed pointer)
    7. Replace session state and cache the new record

Invariants:
    - Bootstrap always yields a usable session; remote-phase failures fall
      back to local storage as-is, or to a fresh empty database with no
      record and an unset expected pointer when there is none
    - A fetched remote head must pass validate_chain() before it is used
    - A failed save leaves session state and the local cache untouched
    - The registry is advanced only in save step 6
    - Uploads from failed saves are left as unreferenced orphans

How to change safely:
    - Keep policy decisions in policy.decide(); this module only sequences I/O
    - Never write the registry before both uploads have succeeded
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..cache import CachedVersion, LocalVersionCache
from ..chain import (
    DEFAULT_MAX_DEPTH,
    RecordIndex,
    VersionRecord,
    create_record,
    validate_chain,
)
from ..credentials import CredentialProvider
from ..engine import Engine
from ..errors import ChainDbError, UnauthorizedError
from ..ordering import OrderingSource
from ..registry.base import ANY, PointerRegistry
from ..store.base import SnapshotStore
from .policy import Decision, Outcome, decide
from .session import LocalState, Session, SessionState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveResult:
    """Result of a successful save.

    Attributes:
        record: Newly published VersionRecord
        record_id: Content id the registry now points at
        snapshot_id: Content id of the uploaded snapshot
    """

    record: VersionRecord
    record_id: str
    snapshot_id: str


def _error_kind(error: BaseException) -> str:
    return error.code if isinstance(error, ChainDbError) else "INTERNAL"


class Reconciler:
    """Owns the collaborators and runs the reconciliation protocol.

    Attributes:
        snapshot_store: Content-addressed blob store
        registry: Pointer registry holding the current record id
        cache: Local version cache
        engine: Local database engine
        ordering: Source of chain_seq / chain_time
        credentials: Provider of the registry write key
        index: Every record seen so far, for ancestry diagnostics

    Example:
        >>> reconciler = Reconciler(store, registry, cache, engine, ordering, credentials)
        >>> session = await reconciler.bootstrap()
        >>> result = await reconciler.save(session, ["Add todo"])
    """

    def __init__(
        self,
        snapshot_store: SnapshotStore,
        registry: PointerRegistry,
        cache: LocalVersionCache,
        engine: Engine,
        ordering: OrderingSource,
        credentials: CredentialProvider,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.snapshot_store = snapshot_store
        self.registry = registry
        self.cache = cache
        self.engine = engine
        self.ordering = ordering
        self.credentials = credentials
        self.max_depth = max_depth
        self.index = RecordIndex()

    async def bootstrap(self) -> Session:
        """Establish a new session against the published version."""
        session = Session(self.engine)
        await self.refresh(session)
        return session

    async def refresh(self, session: Session) -> Session:
        """Reconcile an existing session against the registry again.

        Typically called after a save fails with ConflictError. Running it
        twice with no remote change yields the same state.
        """
        async with session._exclusive():
            session._set_phase(SessionState.LOADING)
            async with session._frozen():
                state = await self._reconcile(session, session.state)
                session._replace_state(state)
            session._set_phase(SessionState.READY)
        return session

    async def _reconcile(self, session: Session, previous: LocalState) -> LocalState:
        cached = self.cache.load()
        local_record = cached.record if cached else None
        local_present = self.engine.exists()
        self.index.add(local_record)

        try:
            remote_id = await self.registry.read()
            remote_record = await self._fetch_record(remote_id) if remote_id else None
            if remote_record is not None:
                # a published head that breaks strict ordering is treated as malformed
                validate_chain(remote_record, self.index, self.max_depth)
            self.index.add(remote_record)

            decision = decide(
                local_record,
                remote_record,
                local_present,
                resolve=self.index,
                max_depth=self.max_depth,
            )

            if decision.adopts_remote:
                snapshot = await self.snapshot_store.get(remote_record.snapshot_id)
                self.engine.load(snapshot)
                self._cache_quietly(remote_record, remote_id)
            elif decision.outcome == Outcome.FRESH_EMPTY and cached is not None:
                # record of a database that no longer exists anywhere
                self.cache.clear()

        except Exception as e:
            logger.error(f"Reconciliation failed, continuing with local storage: {e}", exc_info=True)
            session.outcome = None
            session.last_error = e
            if not local_present:
                # a cached record without its data must never become a save's predecessor
                return LocalState(observed_pointer=None)
            unknown_origin = local_record is None
            if cached is None:
                observed = None
            else:
                observed = cached.record_id if cached.record_id else ANY
            return LocalState(
                effective_record=local_record,
                effective_record_id=cached.record_id if cached else None,
                observed_pointer=observed,
                dirty=unknown_origin or previous.dirty,
                unknown_origin=unknown_origin,
            )

        session.outcome = decision.outcome
        session.last_error = None
        logger.info(
            "Reconciled local database",
            extra={
                "outcome": decision.outcome.value,
                "relation": decision.relation.value,
                "remote_record_id": remote_id,
                "effective": decision.effective.snapshot_id if decision.effective else None,
                "dirty": decision.dirty,
            },
        )
        return LocalState(
            effective_record=decision.effective,
            effective_record_id=self._effective_id(decision, remote_id, remote_record, cached),
            observed_pointer=remote_id,
            # edits made in this session survive a refresh that keeps local storage
            dirty=decision.dirty or (previous.dirty and not decision.adopts_remote),
            unknown_origin=decision.unknown_origin,
        )

    def _effective_id(
        self,
        decision: Decision,
        remote_id: Optional[str],
        remote_record: Optional[VersionRecord],
        cached: Optional[CachedVersion],
    ) -> Optional[str]:
        if decision.adopts_remote:
            return remote_id
        if decision.effective is None:
            return None
        if decision.effective == remote_record:
            return remote_id
        return cached.record_id if cached else None

    def _cache_quietly(self, record: VersionRecord, record_id: Optional[str]) -> None:
        # local storage already holds this record's snapshot; a cache failure only
        # costs provenance on the next bootstrap
        try:
            self.cache.put(record, record_id)
        except OSError as e:
            logger.error(f"Could not cache version {record.snapshot_id} locally: {e}")

    async def _fetch_record(self, record_id: str) -> VersionRecord:
        raw = await self.snapshot_store.get(record_id)
        return VersionRecord.from_json(raw)

    async def save(self, session: Session, change_log: Iterable[str] = ()) -> SaveResult:
        """Publish the local database as the next version.

        Args:
            session: Session to save
            change_log: Optional change descriptions for the new record

        Returns:
            SaveResult for the published record

        Raises:
            UnauthorizedError: No credential is available, or the registry refused it
            ConflictError: The registry moved since this session last reconciled
            InvalidOrderingError: The ordering source did not advance past the
                effective record
            ChainDbError: Any other collaborator failure; session state is unchanged
        """
        async with session._exclusive():
            credential = self.credentials.get()
            if not credential:
                error = UnauthorizedError("No signing credential available")
                session._set_phase(SessionState.ERROR, error.code)
                raise error

            previous = session.state
            session._set_phase(SessionState.SAVING)
            try:
                async with session._frozen():
                    snapshot = self.engine.dump()
                    edits_at_dump = session.edit_count

                snapshot_id = await self.snapshot_store.put(snapshot)
                tick = await self.ordering.latest()
                record = create_record(
                    snapshot_id,
                    previous.effective_record,
                    tick.seq,
                    tick.time,
                    change_log,
                )
                record_id = await self.snapshot_store.put(record.to_json())
                await self.registry.write(
                    record_id,
                    credential=credential,
                    expected=previous.observed_pointer,
                )
            except Exception as e:
                session._set_phase(SessionState.ERROR, _error_kind(e))
                logger.error(
                    f"Save failed: {e}",
                    extra={"error_kind": _error_kind(e)},
                )
                raise

            session._replace_state(
                LocalState(
                    effective_record=record,
                    effective_record_id=record_id,
                    observed_pointer=record_id,
                    # edits that landed after the dump are not in this snapshot
                    dirty=session.edit_count != edits_at_dump,
                    unknown_origin=False,
                )
            )
            session.outcome = None
            session.last_error = None
            self.index.add(record)
            session._set_phase(SessionState.READY)

            try:
                self.cache.put(record, record_id)
            except OSError as e:
                # published already; the next bootstrap treats local data as unknown origin
                logger.error(f"Published {record_id} but could not cache it locally: {e}")
                session.last_error = e

            logger.info(
                "Published new version",
                extra={
                    "record_id": record_id,
                    "snapshot_id": snapshot_id,
                    "chain_seq": record.chain_seq,
                    "chain_time": record.chain_time,
                    "prev": record.prev,
                },
            )
            return SaveResult(record=record, record_id=record_id, snapshot_id=snapshot_id)

    async def close(self) -> None:
        """Close every collaborator that holds connections."""
        await self.snapshot_store.close()
        await self.registry.close()
        await self.ordering.close()
