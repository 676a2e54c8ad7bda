"""
Snapshot store module for ChainDB.

Content-addressed blob backends that hold database snapshots and
serialized version records:
- InMemorySnapshotStore: tests and local development
- IpfsSnapshotStore: IPFS node / gateway over HTTP
- S3SnapshotStore: S3 or MinIO bucket keyed by content hash
"""

from .base import SnapshotStore, create_snapshot_store, sha256_content_id
from .ipfs import IpfsSnapshotStore
from .memory import InMemorySnapshotStore
from .s3 import S3SnapshotStore

__all__ = [
    "InMemorySnapshotStore",
    "IpfsSnapshotStore",
    "S3SnapshotStore",
    "SnapshotStore",
    "create_snapshot_store",
    "sha256_content_id",
]
