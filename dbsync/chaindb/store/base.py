"""
Base protocol for the content-addressed snapshot store.

The snapshot store persists two kinds of blobs: opaque database snapshots
and serialized VersionRecords. Both go through the same put/get contract.

Invariants:
    - put() is content-addressed: identical bytes always yield the same id
    - get() returns exactly the bytes that were put under that id
    - Unreferenced blobs (orphans from failed saves) are harmless

How to change safely:
    - Protocol changes require updating all implementations
    - Keep ids stable across releases; published records reference them
"""

from __future__ import annotations

import hashlib
from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import ClientConfig


def sha256_content_id(data: bytes) -> str:
    """Content id used by backends that do not assign their own."""
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


@runtime_checkable
class SnapshotStore(Protocol):
    """Protocol for content-addressed blob backends.

    Example:
        >>> store = InMemorySnapshotStore()
        >>> content_id = await store.put(b"snapshot bytes")
        >>> assert await store.get(content_id) == b"snapshot bytes"
    """

    @abstractmethod
    async def put(self, data: bytes) -> str:
        """Store a blob.

        Args:
            data: Blob bytes

        Returns:
            Content identifier derived from the bytes

        Raises:
            TransientError: If the backend cannot be reached
        """
        ...

    @abstractmethod
    async def get(self, content_id: str) -> bytes:
        """Fetch a blob.

        Args:
            content_id: Identifier returned by put()

        Returns:
            The stored bytes

        Raises:
            NotFoundError: If no blob exists for content_id
            TransientError: If the backend cannot be reached
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release any connections held by the backend."""
        ...


def create_snapshot_store(config: "ClientConfig") -> SnapshotStore:
    """Factory function to create a snapshot store from configuration.

    Args:
        config: Client configuration

    Returns:
        Appropriate SnapshotStore implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import SnapshotBackend
    from .ipfs import IpfsSnapshotStore
    from .memory import InMemorySnapshotStore
    from .s3 import S3SnapshotStore

    backend = config.snapshot_store.backend
    if backend == SnapshotBackend.IPFS:
        return IpfsSnapshotStore(config.snapshot_store)
    elif backend == SnapshotBackend.S3:
        return S3SnapshotStore(config.snapshot_store)
    elif backend == SnapshotBackend.MEMORY:
        return InMemorySnapshotStore()
    else:
        raise ValueError(f"Unsupported snapshot store backend: {backend}")
