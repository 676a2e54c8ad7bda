"""
Error types for ChainDB.

This module defines every exception the version-chain core and its
collaborators raise:
- ChainDbError: Base exception
- InvalidOrderingError: Record would break strict chain ordering
- ChainTooDeepError: Lineage walk exceeded its depth bound
- NotFoundError: Content identifier not present in the snapshot store
- MalformedRecordError: Fetched bytes are not a version record
- UnauthorizedError: No signing credential, or registry rejected it
- ConflictError: Registry write rejected by its concurrency control
- CorruptSnapshotError: Snapshot bytes cannot be loaded into local storage
- TransientError: Collaborator I/O failure that may succeed on retry

Invariants:
    - All errors inherit from ChainDbError
    - Every error carries a stable ``code`` usable as a status error kind
    - Error messages never include credentials
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ChainDbError(Exception):
    """Base exception for all ChainDB errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    code_default = "CHAINDB_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.code_default
        self.details = details or {}


class InvalidOrderingError(ChainDbError):
    """A record's chain sequence does not advance past its predecessor.

    Raised when:
    - create_record is given a chain_seq <= prev_record.chain_seq
    - validate_chain finds a link that goes backwards
    """

    code_default = "INVALID_ORDERING"

    def __init__(
        self,
        message: str,
        chain_seq: Optional[int] = None,
        prev_chain_seq: Optional[int] = None,
    ) -> None:
        super().__init__(
            message,
            details={"chain_seq": chain_seq, "prev_chain_seq": prev_chain_seq},
        )
        self.chain_seq = chain_seq
        self.prev_chain_seq = prev_chain_seq


class ChainTooDeepError(ChainDbError):
    """Walking ``prev`` links exceeded the configured maximum depth."""

    code_default = "CHAIN_TOO_DEEP"

    def __init__(self, message: str, max_depth: int) -> None:
        super().__init__(message, details={"max_depth": max_depth})
        self.max_depth = max_depth


class NotFoundError(ChainDbError):
    """Content identifier is not present in the snapshot store.

    Typically means the registry points at a blob that was never
    uploaded or has since been reclaimed.
    """

    code_default = "NOT_FOUND"

    def __init__(self, message: str, content_id: str) -> None:
        super().__init__(message, details={"content_id": content_id})
        self.content_id = content_id


class MalformedRecordError(ChainDbError):
    """Fetched bytes do not parse as a version record."""

    code_default = "MALFORMED_RECORD"

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(message, details={"field": field_name})
        self.field_name = field_name


class UnauthorizedError(ChainDbError):
    """No signing credential is available, or the registry rejected it."""

    code_default = "UNAUTHORIZED"


class ConflictError(ChainDbError):
    """Registry write rejected because another writer advanced the pointer.

    Callers usually refresh (re-reconcile) before retrying the save.

    Attributes:
        expected: Pointer value the writer believed was current
        actual: Pointer value the registry actually held, when known
    """

    code_default = "CONFLICT"

    def __init__(
        self,
        message: str,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
    ) -> None:
        super().__init__(message, details={"expected": expected, "actual": actual})
        self.expected = expected
        self.actual = actual


class CorruptSnapshotError(ChainDbError):
    """Snapshot bytes could not be loaded into local storage.

    Local storage is left as it was before the load was attempted.
    """

    code_default = "CORRUPT_SNAPSHOT"


class TransientError(ChainDbError):
    """A collaborator failed in a way that may succeed on retry.

    Raised when:
    - Registry or blob store is unreachable
    - An HTTP call times out or returns a server error
    - The ordering source cannot report the latest block
    """

    code_default = "TRANSIENT"

    def __init__(self, message: str, collaborator: Optional[str] = None) -> None:
        super().__init__(message, details={"collaborator": collaborator})
        self.collaborator = collaborator
