"""
Version chain module for ChainDB.

This module holds the core data structure of the system:
- VersionRecord: immutable manifest of one published database version
- create_record / is_descendant / validate_chain: pure chain operations
- RecordIndex: snapshot id -> record resolver used to walk lineage

Invariants:
    - chain_seq strictly increases from root to head
    - Chains are simple paths; forks are resolved by discarding a branch
"""

from .record import VersionRecord
from .version_chain import (
    DEFAULT_MAX_DEPTH,
    RecordIndex,
    create_record,
    is_descendant,
    iter_lineage,
    validate_chain,
)

__all__ = [
    "DEFAULT_MAX_DEPTH",
    "RecordIndex",
    "VersionRecord",
    "create_record",
    "is_descendant",
    "iter_lineage",
    "validate_chain",
]
