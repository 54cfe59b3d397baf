"""Block references consumed by the tracker."""

from .block import Block, BlockHeader

__all__ = [
    "Block",
    "BlockHeader",
]
