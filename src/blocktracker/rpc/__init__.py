"""JSON-RPC transport for fetching blocks from an execution node."""

from .client import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT, JsonRpcBlockClient

__all__ = [
    "DEFAULT_ENDPOINT",
    "DEFAULT_TIMEOUT",
    "JsonRpcBlockClient",
]
