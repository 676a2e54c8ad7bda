"""
ChainDB - a local SQLite database kept in sync through a version chain.

Every published version of the database is a VersionRecord: an immutable
manifest naming a content-addressed snapshot, the previous version and a
position in a global order. A single mutable pointer in a registry names
the current head; everything else is append-only.

Architecture:
    ┌─────────────┐  save   ┌─────────────────┐  put   ┌────────────────┐
    │  Session    │────────▶│   Reconciler    │───────▶│ SnapshotStore  │
    │ (SQLite +   │◀────────│ (policy.decide) │◀───────│ (IPFS / S3)    │
    │  cache)     │bootstrap└────────┬────────┘  get   └────────────────┘
    └─────────────┘                  │ read / compare-and-set
                                     ▼
                            ┌─────────────────┐
                            │ PointerRegistry │
                            └─────────────────┘

Invariants:
    - Snapshots and records are immutable once uploaded
    - The registry is the only mutable shared state
    - A device never overwrites a registry value it has not observed
    - Ties on chain time resolve to the registry's version

How to change safely:
    - Keep the VersionRecord wire format stable (camelCase JSON keys)
    - Add new record fields as optional so older clients still parse them
    - Route every conflict rule through reconcile.policy.decide()
"""

from ._version import __version__

__all__ = ["__version__"]
