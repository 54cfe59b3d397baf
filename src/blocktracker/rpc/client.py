"""
JSON-RPC block client.

Talks to an execution node over HTTP using the standard Ethereum JSON-RPC
methods:

- `eth_getBlockByNumber("latest", false)` for the current head
- `eth_getBlockByHash(hash, false)` for ancestors during backfill

Both calls ask for the block without full transactions. The tracker only
reads header fields, and full blocks can be megabytes.

Error Mapping
-------------
Library and protocol failures are translated at this boundary so the
tracker only deals with its own exception types:

- Connection errors, timeouts and HTTP error statuses: `TransientFetchError`
- A JSON-RPC `error` member or an undecodable block: `RpcError`
- A `null` result for a hash lookup: `BlockNotFoundError`
"""

from __future__ import annotations

import itertools
import logging
from types import TracebackType
from typing import Any

import httpx

from blocktracker.chain import BlockHeader
from blocktracker.types import (
    BlockNotFoundError,
    Bytes32,
    RpcError,
    TransientFetchError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
"""HTTP request timeout in seconds."""

DEFAULT_ENDPOINT = "https://mainnet.infura.io"
"""Endpoint used when none is configured."""

JSONRPC_VERSION = "2.0"
"""Protocol version sent with every request."""


class JsonRpcBlockClient:
    """
    Fetches blocks from a JSON-RPC endpoint.

    One client can serve several trackers: it holds no per-tracker state
    besides the request id counter.

    Use as an async context manager, or call `aclose()` when done::

        async with JsonRpcBlockClient("http://localhost:8545") as client:
            head = await client.get_head_block()
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Create a client for `endpoint`.

        Args:
            endpoint: URL of the JSON-RPC server.
            timeout: Per-request timeout in seconds.
            http_client: Pre-built HTTP client (tests inject one with a mock
                transport). The caller keeps ownership of an injected client.
        """
        self.endpoint = endpoint
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def __aenter__(self) -> JsonRpcBlockClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this client created it."""
        if self._owns_http:
            await self._http.aclose()

    async def get_head_block(self) -> BlockHeader:
        """
        Fetch the current head block.

        Raises:
            TransientFetchError: If the endpoint could not be reached.
            RpcError: If the endpoint returned an error or no head.
        """
        result = await self._call("eth_getBlockByNumber", ["latest", False])
        if result is None:
            raise RpcError("Endpoint returned no head block")
        return self._decode_block(result)

    async def get_block_by_hash(self, block_hash: Bytes32) -> BlockHeader:
        """
        Fetch a block by hash.

        Raises:
            BlockNotFoundError: If the endpoint knows no block with that hash.
            TransientFetchError: If the endpoint could not be reached.
            RpcError: If the endpoint returned an error.
        """
        result = await self._call("eth_getBlockByHash", [block_hash.to_hex(), False])
        if result is None:
            raise BlockNotFoundError(block_hash)
        return self._decode_block(result)

    async def _call(self, method: str, params: list[Any]) -> Any:
        """
        Perform one JSON-RPC call and return its `result` member.

        Args:
            method: JSON-RPC method name.
            params: Positional parameters.

        Returns:
            The decoded `result` (may be None).
        """
        request_id = next(self._ids)
        payload = {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "method": method,
            "params": params,
        }

        try:
            response = await self._http.post(self.endpoint, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransientFetchError(
                f"HTTP error {exc.response.status_code} from {self.endpoint}: "
                f"{exc.response.text[:200]}"
            ) from exc
        except httpx.RequestError as exc:
            raise TransientFetchError(
                f"Network error while calling {method} on {self.endpoint}: {exc}"
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise RpcError(f"Invalid JSON in {method} response") from exc

        if not isinstance(body, dict):
            raise RpcError(f"Unexpected {method} response: {body!r:.200}")

        error = body.get("error")
        if error is not None:
            if isinstance(error, dict):
                message = error.get("message", error)
                raise RpcError(f"{method} failed: {message}", code=error.get("code"))
            raise RpcError(f"{method} failed: {error}")

        if body.get("id") != request_id:
            logger.debug("Response id %r does not match request id %d", body.get("id"), request_id)

        return body.get("result")

    @staticmethod
    def _decode_block(result: Any) -> BlockHeader:
        """Decode a block object, mapping malformed payloads to `RpcError`."""
        if not isinstance(result, dict):
            raise RpcError(f"Expected a block object, got {type(result).__name__}")
        try:
            return BlockHeader.from_rpc(result)
        except ValueError as exc:
            raise RpcError(f"Malformed block object: {exc}") from exc
