"""
Block references tracked by the head follower.

The tracker only needs two facts about a block: its own hash and the hash of
its parent. Any object exposing both satisfies the `Block` protocol.

`BlockHeader` is the concrete block produced by the JSON-RPC client. It keeps
the number and timestamp as well, for logging and for consumers, but the
reconciliation logic never looks at them.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from blocktracker.types import Bytes32, StrictBaseModel


@runtime_checkable
class Block(Protocol):
    """A block identified by its hash and linked to its parent by hash."""

    @property
    def hash(self) -> Bytes32:
        """Hash identifying this block."""
        ...

    @property
    def parent_hash(self) -> Bytes32:
        """Hash of the block this one extends."""
        ...


def _decode_quantity(value: Any) -> int:
    """
    Decode a JSON-RPC quantity.

    Quantities are `0x`-prefixed hex strings without leading zeros. Plain
    integers are accepted as well since some nodes report them that way.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.startswith("0x"):
        return int(value, 16)
    raise ValueError(f"Invalid quantity: {value!r}")


class BlockHeader(StrictBaseModel):
    """
    Header fields of a block as reported by a JSON-RPC node.

    Headers are immutable. Equality compares all fields, while the tracker
    itself only ever compares hashes.
    """

    hash: Bytes32
    """Hash of the block."""

    parent_hash: Bytes32
    """Hash of the parent block (zero for genesis)."""

    number: int
    """Height of the block in its chain."""

    timestamp: int = 0
    """Unix timestamp (seconds) set by the block producer."""

    @classmethod
    def from_rpc(cls, payload: Mapping[str, Any]) -> BlockHeader:
        """
        Build a header from a JSON-RPC block object.

        Only the fields the tracker uses are read. Transactions, uncles and
        the rest of the payload are ignored.

        Args:
            payload: Block object as returned by `eth_getBlockByHash` or
                `eth_getBlockByNumber`.

        Returns:
            The decoded header.

        Raises:
            ValueError: If a field is missing or cannot be decoded.
        """
        try:
            return cls(
                hash=Bytes32(payload["hash"]),
                parent_hash=Bytes32(payload["parentHash"]),
                number=_decode_quantity(payload["number"]),
                timestamp=_decode_quantity(payload.get("timestamp", 0)),
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed block object: {exc!r}") from exc

    def to_rpc(self) -> dict[str, str]:
        """Render the header in JSON-RPC wire form."""
        return {
            "hash": self.hash.to_hex(),
            "parentHash": self.parent_hash.to_hex(),
            "number": hex(self.number),
            "timestamp": hex(self.timestamp),
        }

    def __str__(self) -> str:
        return f"#{self.number} ({self.hash.short()})"
