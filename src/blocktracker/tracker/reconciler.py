"""
Chain reconciliation for newly observed heads.

The remote source answers two questions only: "what is the head?" and "what
is the block with this hash?". From a series of head snapshots the
reconciler rebuilds what actually happened to the chain in between.

Cases
-----
For an observed block and the retained history, exactly one case applies:

1. **Empty history**: the block starts the history.
2. **Known block**: the block is already retained. Nothing to report.
3. **Extension**: the block's parent is the retained head. Append it.
4. **Reorg**: the block's parent is retained, but deeper than the head.
   Everything after the parent is rolled back, then the block is appended.
5. **Gap**: the parent is not retained at all. Fetch the parent, resolve it
   first (any of these cases may apply to it), then retry the block.

A gap is a reorg whose fork point has not been fetched yet, so both are
resolved by the same walk toward retained history.

The Walk
--------
The walk keeps a stack of pending observations. The observed head sits at
the bottom; each gap pushes the fetched parent on top. The top of the stack
is always resolved first, so ancestors are appended before descendants and
every addition and removal lands in the event in the order it was applied.

Atomicity
---------
All mutations happen on a staged copy of the history. The copy replaces the
real history only when the whole walk succeeds. A failed fetch, or a walk
that exceeds the backfill depth, leaves the history exactly as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from blocktracker import metrics
from blocktracker.chain import Block
from blocktracker.types import (
    ZERO_HASH,
    BackfillDepthExceededError,
    Bytes32,
    FetchError,
    ParentNotFoundError,
)

from .config import MAX_BACKFILL_DEPTH
from .events import ChainEvent
from .history import HistoryBuffer

logger = logging.getLogger(__name__)


class BlockClient(Protocol):
    """
    Protocol for the remote block source.

    The tracker only reads from the source, so one client may be shared by
    several trackers.

    Implementers should:
    - Raise `BlockNotFoundError` when no block has the requested hash
    - Raise `TransientFetchError` on connectivity problems
    """

    async def get_block_by_hash(self, block_hash: Bytes32) -> Block:
        """
        Fetch a block by its hash.

        Args:
            block_hash: Hash of the wanted block.

        Returns:
            The block with that hash.
        """
        ...

    async def get_head_block(self) -> Block:
        """Fetch the current head of the chain."""
        ...


@dataclass(slots=True)
class Reconciler:
    """
    Folds observed heads into the retained history.

    The reconciler does not own the history. The tracker hands it the
    buffer it owns and the reconciler applies changes in place, always on
    the tracker's single worker task.
    """

    history: HistoryBuffer
    """The retained canonical chain view."""

    client: BlockClient
    """Source for missing ancestors."""

    max_backfill_depth: int = MAX_BACKFILL_DEPTH
    """Maximum ancestor fetches per reconciliation."""

    async def reconcile(self, observed: Block) -> ChainEvent | None:
        """
        Fold one observed block into the history.

        Args:
            observed: Block reported by the remote source.

        Returns:
            The additions and removals applied, or None if the block was
            already known.

        Raises:
            ParentNotFoundError: An ancestor needed to bridge a gap could not
                be fetched.
            BackfillDepthExceededError: Bridging the gap needed more than
                `max_backfill_depth` ancestor fetches.
        """
        staged = self.history.copy()
        added: list[Block] = []
        removed: list[Block] = []

        pending: list[Block] = [observed]
        fetched = 0

        while pending:
            block = pending[-1]
            head = staged.head

            if head is None:
                staged.append(block)
                added.append(block)

            elif staged.contains(block):
                logger.debug("Block %s already in history", block.hash)

            elif head.hash == block.parent_hash:
                staged.append(block)
                added.append(block)

            elif (fork_index := staged.index_of_hash(block.parent_hash)) is not None:
                dropped = staged.truncate_after(fork_index)
                logger.debug(
                    "Rolling back %d blocks to fork point %s", len(dropped), block.parent_hash
                )
                removed.extend(dropped)
                staged.append(block)
                added.append(block)

            else:
                # Gap. Resolve the parent first, then come back to this block.
                if fetched >= self.max_backfill_depth:
                    raise BackfillDepthExceededError(observed.hash, self.max_backfill_depth)
                pending.append(await self._fetch_parent(block))
                fetched += 1
                continue

            pending.pop()

        if not added and not removed:
            return None

        self.history.replace_with(staged)
        return ChainEvent(added=tuple(added), removed=tuple(removed))

    async def _fetch_parent(self, block: Block) -> Block:
        """
        Fetch the parent of a block from the remote source.

        Raises:
            ParentNotFoundError: If the block is a genesis block, the fetch
                fails or the source answers with a different block.
        """
        parent_hash = block.parent_hash
        if parent_hash == ZERO_HASH:
            # Genesis has no parent to fetch.
            raise ParentNotFoundError(parent_hash)

        logger.debug("Backfilling parent %s of %s", parent_hash, block.hash)

        try:
            parent = await self.client.get_block_by_hash(parent_hash)
        except FetchError as exc:
            raise ParentNotFoundError(parent_hash) from exc

        if parent.hash != parent_hash:
            logger.warning("Requested block %s but received %s", parent_hash, parent.hash)
            raise ParentNotFoundError(parent_hash)

        metrics.ancestors_fetched.inc()
        return parent
