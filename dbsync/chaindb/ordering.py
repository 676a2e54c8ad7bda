"""
Authoritative ordering source for version records.

Every saved record carries the block number (chain_seq) and block timestamp
(chain_time) observed at save time. Client wall clocks are skewed and
untrusted, so reconciliation decides "newer" on chain_time alone.

Backends:
    JsonRpcOrderingSource: reads the latest block from an EVM JSON-RPC node
        (``eth_getBlockByNumber("latest")``)
    LocalOrderingSource: monotonic counter plus wall clock, for local
        development and tests

Invariants:
    - latest() is fetched fresh on every save, never cached
    - chain_seq values returned by one LocalOrderingSource strictly increase
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, runtime_checkable

import httpx

from .errors import TransientError

if TYPE_CHECKING:
    from .config import ClientConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainTick:
    """Ordering values observed at one instant.

    Attributes:
        seq: Block number
        time: Block timestamp (Unix seconds)
    """

    seq: int
    time: int


@runtime_checkable
class OrderingSource(Protocol):
    async def latest(self) -> ChainTick:
        """Return the latest block number and timestamp.

        Raises:
            TransientError: If the source cannot be reached
        """
        ...

    async def close(self) -> None:
        ...


class LocalOrderingSource:
    """Counter-backed ordering source.

    ``seq`` is the larger of the previous seq + 1 and the current time in
    milliseconds, so values keep increasing across restarts on one machine.

    Attributes:
        clock: Callable returning Unix seconds (tests inject a fake)
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        start_seq: int = 0,
    ) -> None:
        self.clock = clock
        self._last_seq = start_seq

    async def latest(self) -> ChainTick:
        now = self.clock()
        seq = max(self._last_seq + 1, int(now * 1000))
        self._last_seq = seq
        return ChainTick(seq=seq, time=int(now))

    async def close(self) -> None:
        pass


class JsonRpcOrderingSource:
    """Reads the latest block from an Ethereum-compatible JSON-RPC node."""

    def __init__(
        self,
        config: Any,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._client = httpx.AsyncClient(timeout=config.timeout_seconds, transport=transport)
        self._request_id = 0

    async def latest(self) -> ChainTick:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": "eth_getBlockByNumber",
            "params": ["latest", False],
        }
        try:
            response = await self._client.post(self.config.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            raise TransientError(f"Block lookup failed: {e}", collaborator="ordering")
        except ValueError as e:
            raise TransientError(f"Block lookup returned invalid JSON: {e}", collaborator="ordering")

        if body.get("error"):
            raise TransientError(
                f"Block lookup returned an error: {body['error']}", collaborator="ordering"
            )

        block = body.get("result") or {}
        try:
            tick = ChainTick(seq=int(block["number"], 16), time=int(block["timestamp"], 16))
        except (KeyError, TypeError, ValueError) as e:
            raise TransientError(f"Block lookup returned no usable block: {e}", collaborator="ordering")

        logger.debug(f"Latest block {tick.seq} at {tick.time}")
        return tick

    async def close(self) -> None:
        await self._client.aclose()


def create_ordering_source(config: "ClientConfig") -> OrderingSource:
    """Factory function to create the ordering source from configuration."""
    from .config import OrderingBackend

    if config.ordering.backend == OrderingBackend.JSONRPC:
        return JsonRpcOrderingSource(config.ordering)
    elif config.ordering.backend == OrderingBackend.LOCAL:
        return LocalOrderingSource()
    else:
        raise ValueError(f"Unsupported ordering source: {config.ordering.backend}")
