"""
IPFS snapshot store.

Talks to an IPFS node through its HTTP RPC API:
    POST <api>/add?cid-version=1&pin=true   (multipart "file")  -> {"Hash": "<cid>"}
    POST <api>/cat?arg=<cid>                                   -> raw bytes

When a public gateway URL is configured, reads go to
``<gateway>/ipfs/<cid>`` instead, which lets read-only clients work without
an API node of their own.

Invariants:
    - Identical bytes produce the same CID (fixed cid-version and chunking)
    - Blobs are pinned on add so the local node does not reclaim them
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..errors import NotFoundError, TransientError

logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = ("not found", "no link named", "merkledag: not found")


class IpfsSnapshotStore:
    """SnapshotStore backed by an IPFS node.

    Attributes:
        config: SnapshotStoreConfig with ipfs_api_url / ipfs_gateway_url

    Example:
        >>> store = IpfsSnapshotStore(config.snapshot_store)
        >>> cid = await store.put(snapshot)
        >>> await store.close()
    """

    def __init__(
        self,
        config: Any,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the store.

        Args:
            config: SnapshotStoreConfig instance
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.config = config
        self._client = httpx.AsyncClient(
            timeout=config.ipfs_timeout_seconds,
            transport=transport,
        )

    async def put(self, data: bytes) -> str:
        url = f"{self.config.ipfs_api_url.rstrip('/')}/add"
        try:
            response = await self._client.post(
                url,
                params={"cid-version": "1", "pin": "true"},
                files={"file": ("blob", data, "application/octet-stream")},
            )
            response.raise_for_status()
            content_id = response.json()["Hash"]
        except httpx.HTTPError as e:
            raise TransientError(f"IPFS add failed: {e}", collaborator="ipfs")
        except (ValueError, KeyError) as e:
            raise TransientError(f"IPFS add returned an unexpected body: {e}", collaborator="ipfs")

        logger.debug(f"Added blob to IPFS: {content_id} ({len(data)} bytes)")
        return content_id

    async def get(self, content_id: str) -> bytes:
        try:
            if self.config.ipfs_gateway_url:
                url = f"{self.config.ipfs_gateway_url.rstrip('/')}/ipfs/{content_id}"
                response = await self._client.get(url)
            else:
                url = f"{self.config.ipfs_api_url.rstrip('/')}/cat"
                response = await self._client.post(url, params={"arg": content_id})
        except httpx.HTTPError as e:
            raise TransientError(f"IPFS fetch of {content_id} failed: {e}", collaborator="ipfs")

        if response.status_code == 404 or (
            response.status_code >= 400
            and any(marker in response.text.lower() for marker in _NOT_FOUND_MARKERS)
        ):
            raise NotFoundError(f"Blob not found on IPFS: {content_id}", content_id=content_id)

        if response.status_code >= 400:
            raise TransientError(
                f"IPFS fetch of {content_id} returned HTTP {response.status_code}",
                collaborator="ipfs",
            )

        return response.content

    async def close(self) -> None:
        await self._client.aclose()
