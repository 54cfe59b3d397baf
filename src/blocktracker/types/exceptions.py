"""Exception hierarchy for block retrieval and chain reconciliation."""

from __future__ import annotations

from .byte_arrays import Bytes32


class TrackerError(Exception):
    """
    Base exception for all tracker errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class FetchError(TrackerError):
    """Base class for failures of the remote block source."""


class TransientFetchError(FetchError):
    """
    Raised when the remote source could not be reached or answered badly.

    Covers connection failures, timeouts and non-2xx HTTP statuses. Retrying
    later may succeed.
    """


class BlockNotFoundError(FetchError):
    """
    Raised when the remote source has no block with the requested hash.

    Attributes:
        block_hash: The hash that was looked up.
    """

    def __init__(self, block_hash: Bytes32) -> None:
        self.block_hash = block_hash
        super().__init__(f"Block {block_hash} not found")


class RpcError(FetchError):
    """
    Raised when the endpoint returns a JSON-RPC error or a malformed payload.

    Attributes:
        code: The JSON-RPC error code, if the endpoint sent one.
    """

    def __init__(self, message: str, *, code: int | None = None) -> None:
        self.code = code
        if code is not None:
            message = f"{message} (code {code})"
        super().__init__(message)


class ReconcileError(TrackerError):
    """Base class for failures to fold an observed head into history."""


class ParentNotFoundError(ReconcileError):
    """
    Raised when an ancestor needed to bridge a gap cannot be fetched.

    The underlying `FetchError` is chained as `__cause__`.

    Attributes:
        parent_hash: The ancestor hash that could not be retrieved.
    """

    def __init__(self, parent_hash: Bytes32) -> None:
        self.parent_hash = parent_hash
        super().__init__(f"Parent with hash {parent_hash} not found")


class BackfillDepthExceededError(ReconcileError):
    """
    Raised when bridging a gap needs more ancestor fetches than allowed.

    Attributes:
        block_hash: The observed block whose ancestry could not be resolved.
        max_depth: The configured ancestor fetch limit.
    """

    def __init__(self, block_hash: Bytes32, max_depth: int) -> None:
        self.block_hash = block_hash
        self.max_depth = max_depth
        super().__init__(
            f"Backfill for block {block_hash} exceeded {max_depth} ancestor fetches "
            f"without reaching retained history"
        )
