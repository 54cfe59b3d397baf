"""
Event types delivered to the tracker's consumer.

The tracker runs in one of two modes, chosen once at construction:

- **Reconciling**: every new head is folded into the retained history and
  the consumer receives a `ChainEvent` listing the blocks that joined and
  left the canonical chain.
- **Head only**: every new head is forwarded as a `HeadEvent`, with no
  attempt to detect reorgs or fill gaps.

Both variants expose `added` and `removed`, so a consumer that only cares
about the block lists can handle either without matching on the type.
"""

from __future__ import annotations

from dataclasses import dataclass

from blocktracker.chain import Block


@dataclass(frozen=True, slots=True)
class ChainEvent:
    """
    Net change to the canonical chain caused by one observed head.

    A single event can carry a rollback and a backfill at once, for example
    when a competing branch several blocks long replaces the retained tip.
    """

    added: tuple[Block, ...] = ()
    """Blocks that joined the canonical chain, oldest ancestor first."""

    removed: tuple[Block, ...] = ()
    """Blocks dropped from the canonical chain, earliest evicted first."""

    @property
    def is_reorg(self) -> bool:
        """Check if this event rolled back any previously added block."""
        return bool(self.removed)

    def __bool__(self) -> bool:
        return bool(self.added or self.removed)


@dataclass(frozen=True, slots=True)
class HeadEvent:
    """A newly observed head, forwarded without reconciliation."""

    block: Block
    """The head block reported by the remote source."""

    @property
    def added(self) -> tuple[Block, ...]:
        """The head block, as a one-element addition."""
        return (self.block,)

    @property
    def removed(self) -> tuple[Block, ...]:
        """Always empty: head-only mode never removes blocks."""
        return ()


TrackerEvent = ChainEvent | HeadEvent
"""Union of all events the tracker emits."""
