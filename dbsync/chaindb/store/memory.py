"""
In-memory snapshot store for testing.

Invariants:
    - All data is lost on process exit
    - Content ids match the S3 backend's ``sha256:<hex>`` scheme
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Set

from ..errors import NotFoundError, TransientError
from .base import sha256_content_id

logger = logging.getLogger(__name__)


class InMemorySnapshotStore:
    """Dictionary-backed implementation of SnapshotStore.

    Several clients in one test can share a single instance to simulate
    a common blob network.

    Testing helpers:
        fail_next_put / fail_next_get inject a TransientError into the next
        call; blob_count() and ids() inspect what has been stored.
    """

    def __init__(self) -> None:
        self._blobs: Dict[str, bytes] = {}
        self._fail_put: Optional[Exception] = None
        self._fail_get: Optional[Exception] = None
        self.put_calls = 0
        self.get_calls = 0

    async def put(self, data: bytes) -> str:
        self.put_calls += 1
        if self._fail_put is not None:
            error, self._fail_put = self._fail_put, None
            raise error

        content_id = sha256_content_id(data)
        self._blobs[content_id] = bytes(data)
        logger.debug(f"Stored blob {content_id} ({len(data)} bytes)")
        return content_id

    async def get(self, content_id: str) -> bytes:
        self.get_calls += 1
        if self._fail_get is not None:
            error, self._fail_get = self._fail_get, None
            raise error

        try:
            return self._blobs[content_id]
        except KeyError:
            raise NotFoundError(f"Blob not found: {content_id}", content_id=content_id)

    async def close(self) -> None:
        """No-op; data is kept so a store can outlive a session."""

    # Testing helpers

    def fail_next_put(self, error: Optional[Exception] = None) -> None:
        self._fail_put = error or TransientError("injected put failure", collaborator="memory")

    def fail_next_get(self, error: Optional[Exception] = None) -> None:
        self._fail_get = error or TransientError("injected get failure", collaborator="memory")

    def blob_count(self) -> int:
        return len(self._blobs)

    def ids(self) -> Set[str]:
        return set(self._blobs)

    def put_raw(self, content_id: str, data: bytes) -> None:
        """Store bytes under an arbitrary id (simulates a corrupt network)."""
        self._blobs[content_id] = data

    def delete(self, content_id: str) -> None:
        self._blobs.pop(content_id, None)
