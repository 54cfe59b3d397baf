"""
Head tracking for a JSON-RPC block chain.

What Is Tracked?
----------------
The tracker polls a node for its current head and turns the sequence of
heads into a stream of chain events: blocks that joined the canonical chain
and blocks that a reorg pushed out of it.

How It Works
------------
- A bounded history holds the most recent canonical blocks
- Each new head is matched against that history
- Extensions are appended, reorgs roll back to the fork point
- Gaps are bridged by fetching parents one hash at a time
- The result is delivered through a single-slot queue
"""

from __future__ import annotations

__all__ = [
    # Main service
    "BlockTracker",
    "TrackerState",
    # Reconciliation
    "BlockClient",
    "Reconciler",
    "HistoryBuffer",
    # Events
    "ChainEvent",
    "HeadEvent",
    "TrackerEvent",
    # Configuration
    "TrackerConfig",
    "DEFAULT_CONFIG",
    "BLOCK_POLL_INTERVAL",
    "MAX_HISTORY_BLOCKS",
    "MAX_BACKFILL_DEPTH",
    "EVENT_QUEUE_SIZE",
]

from .config import (
    BLOCK_POLL_INTERVAL,
    DEFAULT_CONFIG,
    EVENT_QUEUE_SIZE,
    MAX_BACKFILL_DEPTH,
    MAX_HISTORY_BLOCKS,
    TrackerConfig,
)
from .events import ChainEvent, HeadEvent, TrackerEvent
from .history import HistoryBuffer
from .reconciler import BlockClient, Reconciler
from .service import BlockTracker
from .states import TrackerState
