"""Reusable type definitions for the block tracker."""

from .base import CamelModel, StrictBaseModel
from .byte_arrays import ZERO_HASH, Bytes32
from .exceptions import (
    BackfillDepthExceededError,
    BlockNotFoundError,
    FetchError,
    ParentNotFoundError,
    ReconcileError,
    RpcError,
    TrackerError,
    TransientFetchError,
)

__all__ = [
    # Core types
    "Bytes32",
    "ZERO_HASH",
    "CamelModel",
    "StrictBaseModel",
    # Exceptions
    "TrackerError",
    "FetchError",
    "TransientFetchError",
    "BlockNotFoundError",
    "RpcError",
    "ReconcileError",
    "ParentNotFoundError",
    "BackfillDepthExceededError",
]
