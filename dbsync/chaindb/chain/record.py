"""
Version record type for the ChainDB version chain.

A VersionRecord is the manifest published for every saved version of the
database. It names the snapshot blob, the predecessor version and the
chain-derived ordering values used to decide which copy is newer.

Wire format (JSON, stored as a blob in the snapshot store):
    {
        "cid": "<snapshot content id>",
        "timestamp": <client wall clock, Unix ms>,
        "blockNumber": <chain sequence>,
        "blockTimestamp": <chain time, Unix seconds>,
        "prevVersion": "<predecessor snapshot content id>" | null,
        "changeLog": ["...", ...],
        "signature": "..."          (optional)
    }

Invariants:
    - Records are immutable once created
    - to_json() is canonical: equal records always encode to equal bytes,
      so the record's own content id is stable
    - from_json() accepts anything to_json() produces

How to change safely:
    - Add new optional keys, never rename or drop existing ones
    - Records already published must keep parsing
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..errors import MalformedRecordError


@dataclass(frozen=True)
class VersionRecord:
    """One published version of the database.

    Attributes:
        snapshot_id: Content id of the database snapshot this version represents
        created_at: Client wall clock at creation (Unix ms), informational only
        chain_seq: Block number observed at creation, strictly increasing along a chain
        chain_time: Block timestamp at creation, authoritative for "newer"
        prev: snapshot_id of the predecessor record, None for a root
        change_log: Human-readable change descriptions, informational only
        signature: Optional signature over the record, informational only
    """

    snapshot_id: str
    created_at: int
    chain_seq: int
    chain_time: int
    prev: Optional[str] = None
    change_log: Tuple[str, ...] = field(default_factory=tuple)
    signature: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.prev is None

    def same_data(self, other: "VersionRecord") -> bool:
        """Whether both records describe the same snapshot content."""
        return self.snapshot_id == other.snapshot_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: Dict[str, Any] = {
            "cid": self.snapshot_id,
            "timestamp": self.created_at,
            "blockNumber": self.chain_seq,
            "blockTimestamp": self.chain_time,
            "prevVersion": self.prev,
            "changeLog": list(self.change_log),
        }
        if self.signature is not None:
            data["signature"] = self.signature
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VersionRecord:
        """Create from dictionary.

        Raises:
            MalformedRecordError: If a required field is missing or mistyped
        """
        if not isinstance(data, dict):
            raise MalformedRecordError("Version record must be a JSON object")

        snapshot_id = _require(data, "cid", str)
        if not snapshot_id:
            raise MalformedRecordError("Version record has empty cid", field_name="cid")

        prev = data.get("prevVersion")
        if prev is not None and not isinstance(prev, str):
            raise MalformedRecordError(
                "prevVersion must be a string or null", field_name="prevVersion"
            )

        change_log = data.get("changeLog", [])
        if not isinstance(change_log, list) or not all(isinstance(c, str) for c in change_log):
            raise MalformedRecordError(
                "changeLog must be a list of strings", field_name="changeLog"
            )

        signature = data.get("signature")
        if signature is not None and not isinstance(signature, str):
            raise MalformedRecordError("signature must be a string", field_name="signature")

        return cls(
            snapshot_id=snapshot_id,
            created_at=_require(data, "timestamp", int),
            chain_seq=_require(data, "blockNumber", int),
            chain_time=_require(data, "blockTimestamp", int),
            prev=prev or None,
            change_log=tuple(change_log),
            signature=signature,
        )

    def to_json(self) -> bytes:
        """Encode as canonical JSON bytes."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes) -> VersionRecord:
        """Decode a record fetched from the snapshot store.

        Raises:
            MalformedRecordError: If the bytes are not a valid record
        """
        try:
            data = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedRecordError(f"Version record is not valid JSON: {e}")
        return cls.from_dict(data)

    def __str__(self) -> str:
        return f"VersionRecord(cid={self.snapshot_id}, seq={self.chain_seq}, time={self.chain_time})"


def _require(data: Dict[str, Any], key: str, kind: type) -> Any:
    if key not in data:
        raise MalformedRecordError(f"Version record is missing '{key}'", field_name=key)
    value = data[key]
    # bool is an int subclass; a boolean block number is still malformed
    if not isinstance(value, kind) or isinstance(value, bool):
        raise MalformedRecordError(
            f"Version record field '{key}' must be {kind.__name__}", field_name=key
        )
    return value
