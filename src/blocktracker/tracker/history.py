"""
Bounded history of recently seen blocks.

The history buffer is the tracker's view of "the canonical chain so far":
an oldest-first run of blocks where each entry extends the one before it.

Capacity
--------
The buffer holds at most `capacity` blocks. Appending to a full buffer drops
the oldest entry first. This is a retention limit only: dropped blocks are
not reported as removed, they simply leave the window in which reorgs can be
resolved locally.

Ownership
---------
Exactly one tracker owns a buffer and mutates it from a single task, so the
buffer does no locking. The reconciler stages its work on a `copy()` and
commits with `replace_with()`, which keeps a failed reconciliation from
leaving partial changes behind.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from blocktracker.chain import Block
from blocktracker.types import Bytes32

from .config import MAX_HISTORY_BLOCKS


@dataclass(slots=True)
class HistoryBuffer:
    """Capacity-bounded, oldest-first sequence of blocks."""

    capacity: int = MAX_HISTORY_BLOCKS
    """Maximum number of retained blocks."""

    _blocks: list[Block] = field(default_factory=list)
    """Retained blocks, oldest first."""

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError(f"History capacity must be at least 1, got {self.capacity}")
        if len(self._blocks) > self.capacity:
            raise ValueError(
                f"{len(self._blocks)} blocks do not fit a history of capacity {self.capacity}"
            )

    def __len__(self) -> int:
        """Return the number of retained blocks."""
        return len(self._blocks)

    def __iter__(self) -> Iterator[Block]:
        """Iterate over retained blocks, oldest first."""
        return iter(self._blocks)

    @property
    def head(self) -> Block | None:
        """The most recently appended block, or None when empty."""
        return self._blocks[-1] if self._blocks else None

    @property
    def is_empty(self) -> bool:
        """Check if the buffer holds no blocks."""
        return not self._blocks

    def append(self, block: Block) -> None:
        """
        Append a block, evicting the oldest entry if the buffer is full.

        Args:
            block: The block to add at the head end.
        """
        if len(self._blocks) == self.capacity:
            del self._blocks[0]
        self._blocks.append(block)

    def contains(self, block: Block) -> bool:
        """Check if a block with the same hash is retained."""
        return self.index_of_hash(block.hash) is not None

    def index_of_hash(self, block_hash: Bytes32) -> int | None:
        """
        Find the position of a block by hash.

        Args:
            block_hash: The hash to look up.

        Returns:
            Index of the first retained block with that hash, or None.
        """
        for index, block in enumerate(self._blocks):
            if block.hash == block_hash:
                return index
        return None

    def truncate_after(self, index: int) -> list[Block]:
        """
        Discard every block after `index`.

        Args:
            index: Position of the last block to keep.

        Returns:
            The discarded blocks, oldest first.

        Raises:
            IndexError: If `index` does not address a retained block.
        """
        if not 0 <= index < len(self._blocks):
            raise IndexError(f"History index {index} out of range (size {len(self._blocks)})")

        discarded = self._blocks[index + 1 :]
        del self._blocks[index + 1 :]
        return discarded

    def copy(self) -> HistoryBuffer:
        """Return an independent buffer with the same capacity and blocks."""
        return HistoryBuffer(capacity=self.capacity, _blocks=list(self._blocks))

    def replace_with(self, other: HistoryBuffer) -> None:
        """Adopt the contents of another buffer."""
        self._blocks = list(other._blocks)

    def snapshot(self) -> tuple[Block, ...]:
        """Return the retained blocks as an immutable tuple, oldest first."""
        return tuple(self._blocks)
