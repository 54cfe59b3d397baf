"""
Tracker configuration constants.

Operational parameters for head following: poll cadence, retained history
and backfill limits.
"""

from __future__ import annotations

from typing import Final

from pydantic import Field

from blocktracker.types import StrictBaseModel

BLOCK_POLL_INTERVAL: Final[float] = 4.0
"""Seconds between two head requests."""

MAX_HISTORY_BLOCKS: Final[int] = 10
"""Maximum number of blocks retained as the canonical chain view."""

MAX_BACKFILL_DEPTH: Final[int] = 64
"""Maximum ancestor fetches a single reconciliation may perform."""

EVENT_QUEUE_SIZE: Final[int] = 1
"""Capacity of the outbound event queue (a single buffered hand-off)."""


class TrackerConfig(StrictBaseModel):
    """Validated, immutable settings for one tracker instance."""

    poll_interval: float = Field(default=BLOCK_POLL_INTERVAL, gt=0)
    """Seconds to wait between head requests."""

    history_size: int = Field(default=MAX_HISTORY_BLOCKS, ge=1)
    """Capacity of the history buffer."""

    max_backfill_depth: int = Field(default=MAX_BACKFILL_DEPTH, ge=1)
    """Ancestor fetch limit per reconciliation."""


DEFAULT_CONFIG: Final = TrackerConfig()
"""Configuration used when none is supplied."""
