"""
Base protocol for the pointer registry.

The registry holds exactly one mutable value: the content id of the current
published VersionRecord. Anyone may read it; only the owner's key may write.

Concurrency control belongs to the registry. A writer may pass the pointer
value it last observed as ``expected``; the registry rejects the write with
ConflictError if the slot has moved since. Passing ``expected=None`` means
"the slot must still be unset". Omitting it skips the check.

Invariants:
    - write() is atomic from the caller's perspective
    - After a successful write, read() returns the written value
      (read-after-write-if-write-succeeded is the only consistency assumed)

How to change safely:
    - Protocol changes require updating all implementations
    - Keep ANY as the default for ``expected`` so plain writes stay unchecked
"""

from __future__ import annotations

import hmac
from abc import abstractmethod
from typing import TYPE_CHECKING, Optional, Protocol, Union, runtime_checkable

if TYPE_CHECKING:
    from ..config import ClientConfig


class _AnyPointer:
    """Sentinel: write without comparing against the current value."""

    _instance: Optional["_AnyPointer"] = None

    def __new__(cls) -> "_AnyPointer":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ANY"


ANY = _AnyPointer()

Expected = Union[str, None, _AnyPointer]


def key_matches(credential: Optional[str], owner_key: Optional[str]) -> bool:
    """Constant-time owner key check; an unset owner key matches nothing."""
    if not credential or not owner_key:
        return False
    return hmac.compare_digest(credential.encode("utf-8"), owner_key.encode("utf-8"))


@runtime_checkable
class PointerRegistry(Protocol):
    """Protocol for single-slot pointer backends."""

    @abstractmethod
    async def read(self) -> Optional[str]:
        """Return the current content id, or None if never written.

        Raises:
            TransientError: If the registry cannot be reached
        """
        ...

    @abstractmethod
    async def write(
        self,
        content_id: str,
        *,
        credential: str,
        expected: Expected = ANY,
    ) -> None:
        """Point the registry at a new content id.

        Args:
            content_id: Id of the new VersionRecord blob
            credential: Owner key authorizing the write
            expected: Pointer value the writer last observed, or ANY

        Raises:
            UnauthorizedError: If the credential is not the owner's
            ConflictError: If expected does not match the current value
            TransientError: If the registry cannot be reached
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release any connections held by the backend."""
        ...


def create_pointer_registry(config: "ClientConfig") -> PointerRegistry:
    """Factory function to create a pointer registry from configuration.

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import RegistryBackend
    from .http import HttpPointerRegistry
    from .memory import InMemoryPointerRegistry
    from .sqlite import SqlitePointerRegistry

    backend = config.registry.backend
    if backend == RegistryBackend.HTTP:
        return HttpPointerRegistry(config.registry)
    elif backend == RegistryBackend.SQLITE:
        return SqlitePointerRegistry(
            db_path=config.registry.sqlite_path,
            name=config.registry.name,
            owner_key=config.registry.owner_key,
        )
    elif backend == RegistryBackend.MEMORY:
        return InMemoryPointerRegistry(owner_key=config.registry.owner_key)
    else:
        raise ValueError(f"Unsupported pointer registry backend: {backend}")
