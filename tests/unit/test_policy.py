"""
Unit tests for the reconciliation decision procedure.

decide() does no I/O, so every branch is exercised directly with
hand-built records.

Tests cover:
- Each outcome of the decision order
- Snapshot-id equality regardless of metadata
- Tie-break on chain_time
- Ancestry diagnostics
"""

import logging

import pytest

from dbsync.chaindb.chain import RecordIndex, VersionRecord, create_record
from dbsync.chaindb.reconcile import Outcome, Relation, decide, relate


def record(snapshot_id, chain_time, chain_seq=None, prev=None, change_log=(), created_at=0):
    return VersionRecord(
        snapshot_id=snapshot_id,
        created_at=created_at,
        chain_seq=chain_seq if chain_seq is not None else chain_time,
        chain_time=chain_time,
        prev=prev,
        change_log=tuple(change_log),
    )


class TestDecideWithoutRemote:
    """The registry has never been written."""

    def test_fresh_device_starts_empty(self):
        """Remote empty and no local snapshot: empty database, not dirty."""
        decision = decide(None, None, local_snapshot_present=False)

        assert decision.outcome == Outcome.FRESH_EMPTY
        assert decision.effective is None
        assert decision.dirty is False
        assert not decision.adopts_remote

    def test_fresh_empty_ignores_stale_local_record(self):
        decision = decide(record("a", 100), None, local_snapshot_present=False)

        assert decision.outcome == Outcome.FRESH_EMPTY
        assert decision.effective is None

    def test_unpublished_local_data_is_kept(self):
        """Local data that was never published stays, and counts as unsaved."""
        local = record("a", 100)

        decision = decide(local, None, local_snapshot_present=True)

        assert decision.outcome == Outcome.UNPUBLISHED
        assert decision.effective == local
        assert decision.dirty is True
        assert decision.unknown_origin is False

    def test_unpublished_without_record_is_unknown_origin(self):
        decision = decide(None, None, local_snapshot_present=True)

        assert decision.outcome == Outcome.UNPUBLISHED
        assert decision.unknown_origin is True
        assert decision.dirty is True


class TestDecideWithRemote:
    """The registry points at a record."""

    def test_fresh_device_adopts_remote(self):
        remote = record("r", 50)

        decision = decide(None, remote, local_snapshot_present=False)

        assert decision.outcome == Outcome.ADOPT_REMOTE
        assert decision.effective == remote
        assert decision.dirty is False
        assert decision.adopts_remote

    def test_fresh_device_adopts_remote_even_if_cache_is_newer(self):
        """Without a local snapshot a cached record has nothing to describe."""
        decision = decide(record("l", 500), record("r", 50), local_snapshot_present=False)

        assert decision.outcome == Outcome.ADOPT_REMOTE

    def test_unknown_origin(self):
        """Local data without a record is kept and flagged."""
        decision = decide(None, record("r", 50), local_snapshot_present=True)

        assert decision.outcome == Outcome.UNKNOWN_ORIGIN
        assert decision.effective is None
        assert decision.dirty is True
        assert decision.unknown_origin is True
        assert not decision.adopts_remote

    def test_same_snapshot_is_in_sync(self):
        local = record("same", 100)

        decision = decide(local, record("same", 100), local_snapshot_present=True)

        assert decision.outcome == Outcome.IN_SYNC
        assert decision.effective == local
        assert decision.dirty is False
        assert decision.relation == Relation.SAME

    def test_same_snapshot_with_different_metadata_is_in_sync(self):
        local = record("same", 100, change_log=["mine"], created_at=1)
        remote = record("same", 300, chain_seq=900, change_log=["theirs"], created_at=2)

        decision = decide(local, remote, local_snapshot_present=True)

        assert decision.outcome == Outcome.IN_SYNC
        assert decision.effective == local

    def test_local_ahead(self):
        """Local chain_time 100 beats remote 50: keep local, dirty."""
        local = record("l", 100)

        decision = decide(local, record("r", 50), local_snapshot_present=True)

        assert decision.outcome == Outcome.LOCAL_AHEAD
        assert decision.effective == local
        assert decision.dirty is True
        assert not decision.adopts_remote

    def test_remote_newer(self):
        remote = record("r", 200)

        decision = decide(record("l", 100), remote, local_snapshot_present=True)

        assert decision.outcome == Outcome.REMOTE_NEWER
        assert decision.effective == remote
        assert decision.dirty is False
        assert decision.adopts_remote

    def test_tie_goes_to_remote(self):
        remote = record("r", 100, chain_seq=1)

        decision = decide(record("l", 100, chain_seq=999), remote, local_snapshot_present=True)

        assert decision.outcome == Outcome.REMOTE_NEWER
        assert decision.effective == remote

    @pytest.mark.parametrize("local_time,remote_time", [(1, 1), (10, 10), (0, 0)])
    def test_tie_is_deterministic(self, local_time, remote_time):
        for _ in range(3):
            decision = decide(
                record("l", local_time), record("r", remote_time), local_snapshot_present=True
            )
            assert decision.outcome == Outcome.REMOTE_NEWER

    def test_chain_seq_does_not_decide(self):
        """Newer is decided on chain_time only."""
        decision = decide(
            record("l", 100, chain_seq=1), record("r", 50, chain_seq=1000), local_snapshot_present=True
        )

        assert decision.outcome == Outcome.LOCAL_AHEAD


class TestAncestry:
    """Ancestry is reported but never changes the outcome."""

    def test_fast_forward_is_remote_descends(self):
        base = create_record("base", None, 1, 10)
        remote = create_record("next", base, 2, 20)

        decision = decide(base, remote, local_snapshot_present=True)

        assert decision.relation == Relation.REMOTE_DESCENDS
        assert decision.outcome == Outcome.REMOTE_NEWER

    def test_local_descends(self):
        base = create_record("base", None, 1, 10)
        local = create_record("mine", base, 2, 20)

        assert relate(local, base) == Relation.LOCAL_DESCENDS

    def test_fork_is_diverged(self):
        base = create_record("base", None, 1, 10)
        left = create_record("left", base, 2, 20)
        right = create_record("right", base, 3, 30)

        decision = decide(left, right, True, resolve=RecordIndex([base]))

        assert decision.relation == Relation.DIVERGED
        assert decision.outcome == Outcome.REMOTE_NEWER

    def test_deep_fast_forward_uses_resolver(self):
        base = create_record("base", None, 1, 10)
        middle = create_record("middle", base, 2, 20)
        head = create_record("head", middle, 3, 30)

        assert relate(base, head) == Relation.DIVERGED
        assert relate(base, head, RecordIndex([middle])) == Relation.REMOTE_DESCENDS

    def test_contradicting_chain_time_is_logged(self, caplog):
        """A descendant with an older chain_time keeps local but warns."""
        base = create_record("base", None, 1, 100)
        remote = create_record("next", base, 2, 50)

        with caplog.at_level(logging.WARNING, logger="dbsync.chaindb.reconcile.policy"):
            decision = decide(base, remote, local_snapshot_present=True)

        assert decision.outcome == Outcome.LOCAL_AHEAD
        assert decision.relation == Relation.REMOTE_DESCENDS
        assert "contradicts" in caplog.text

    def test_too_deep_reports_diverged(self):
        records = [create_record("s0", None, 1, 1)]
        for i in range(1, 20):
            records.append(create_record(f"s{i}", records[-1], i + 1, i + 1))

        relation = relate(records[0], records[-1], RecordIndex(records), max_depth=5)

        assert relation == Relation.DIVERGED
