"""
In-memory pointer registry for testing.

Several clients in one test share an instance to simulate a single
published pointer.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..errors import ConflictError, UnauthorizedError
from .base import ANY, Expected, key_matches

logger = logging.getLogger(__name__)


class InMemoryPointerRegistry:
    """Single-slot registry held in process memory.

    Attributes:
        owner_key: Key that write() accepts; None rejects every write
        history: Every value written, oldest first

    Testing helpers:
        fail_next_read / fail_next_write inject an error into the next call.
    """

    def __init__(self, owner_key: Optional[str] = None, initial: Optional[str] = None) -> None:
        self.owner_key = owner_key
        self._value = initial
        self.history: List[str] = [initial] if initial else []
        self._fail_read: Optional[Exception] = None
        self._fail_write: Optional[Exception] = None
        self.write_calls = 0

    async def read(self) -> Optional[str]:
        if self._fail_read is not None:
            error, self._fail_read = self._fail_read, None
            raise error
        return self._value

    async def write(
        self,
        content_id: str,
        *,
        credential: str,
        expected: Expected = ANY,
    ) -> None:
        self.write_calls += 1
        if self._fail_write is not None:
            error, self._fail_write = self._fail_write, None
            raise error

        if not key_matches(credential, self.owner_key):
            raise UnauthorizedError("Credential is not authorized to write this registry")

        if expected is not ANY and expected != self._value:
            raise ConflictError(
                "Registry pointer moved since it was read",
                expected=expected,
                actual=self._value,
            )

        self._value = content_id
        self.history.append(content_id)
        logger.debug(f"Registry pointer set to {content_id}")

    async def close(self) -> None:
        """No-op; the value survives so clients can share it."""

    # Testing helpers

    def fail_next_read(self, error: Exception) -> None:
        self._fail_read = error

    def fail_next_write(self, error: Exception) -> None:
        self._fail_write = error

    def force(self, content_id: Optional[str]) -> None:
        """Set the pointer without authorization checks."""
        self._value = content_id
        if content_id:
            self.history.append(content_id)
