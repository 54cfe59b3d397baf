"""
Block tracker service that follows the chain head.

The Problem
-----------
A JSON-RPC node can tell us its current head, but it does not push changes.
Between two requests the chain may have grown by several blocks, or switched
to a competing branch. The consumer still wants a clean stream: every block
that joined the canonical chain, every block that left it, in order.

How It Works
------------
1. Sleep until the next poll tick (or until shutdown is requested)
2. Ask the remote source for the current head
3. Skip the head if it is the one seen on the previous tick
4. Reconcile the head against retained history (or forward it as is)
5. Hand the resulting event to the consumer, waiting for room in the queue
6. Repeat until shutdown

Backpressure
------------
The outbound queue holds a single event. When the consumer falls behind,
step 5 blocks and the loop stops polling until the event is taken. The
tracker never outruns its consumer; it may skip poll ticks instead.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from blocktracker import metrics
from blocktracker.chain import Block
from blocktracker.types import BackfillDepthExceededError, Bytes32, FetchError, ReconcileError

from .config import DEFAULT_CONFIG, EVENT_QUEUE_SIZE, TrackerConfig
from .events import ChainEvent, HeadEvent, TrackerEvent
from .history import HistoryBuffer
from .reconciler import BlockClient, Reconciler
from .states import TrackerState

logger = logging.getLogger(__name__)


def _new_event_queue() -> asyncio.Queue[TrackerEvent]:
    """Create the single-slot hand-off queue."""
    return asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)


@dataclass(slots=True)
class BlockTracker:
    """
    Polls the remote head and publishes chain events.

    All polling, reconciliation and history updates run on the one task
    executing `start()`. The history therefore needs no locking, and events
    reach the queue in exactly the order they were produced.

    The output mode is fixed at construction:

    - `reconcile=True`: `ChainEvent` values with additions and removals
    - `reconcile=False`: one `HeadEvent` per new head
    """

    client: BlockClient
    """Remote block source. Shared and read-only."""

    reconcile: bool = False
    """Whether heads are reconciled against history."""

    config: TrackerConfig = DEFAULT_CONFIG
    """Polling and history settings."""

    events: asyncio.Queue[TrackerEvent] = field(default_factory=_new_event_queue)
    """Outbound event queue observed by the consumer."""

    history: HistoryBuffer = field(init=False)
    """Retained canonical chain view, owned by this tracker."""

    _reconciler: Reconciler = field(init=False, repr=False)
    """Reconciliation logic bound to this tracker's history."""

    _last_observed_hash: Bytes32 | None = field(default=None, init=False)
    """Hash of the head seen on the most recent successful poll."""

    _shutdown: asyncio.Event = field(default_factory=asyncio.Event, init=False, repr=False)
    """Cancellation signal observed at every tick wait."""

    _state: TrackerState = field(default=TrackerState.IDLE, init=False)
    """Current phase of the polling loop."""

    _running: bool = field(default=False, init=False)
    """Whether `start()` is executing."""

    def __post_init__(self) -> None:
        self.history = HistoryBuffer(capacity=self.config.history_size)
        self._reconciler = Reconciler(
            history=self.history,
            client=self.client,
            max_backfill_depth=self.config.max_backfill_depth,
        )

    @property
    def state(self) -> TrackerState:
        """Current phase of the polling loop."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the polling loop is active."""
        return self._running

    @property
    def last_observed_hash(self) -> Bytes32 | None:
        """Hash of the most recently observed distinct head."""
        return self._last_observed_hash

    async def start(self, shutdown: asyncio.Event | None = None) -> None:
        """
        Poll the remote head until shutdown is requested.

        Cancellation is cooperative. The signal is checked while waiting for
        the next tick; an in-flight fetch or a blocked hand-off to the
        consumer completes before the loop notices it.

        A `stop()` issued before `start()` is honoured. Once the loop has
        exited the tracker may be started again.

        Args:
            shutdown: Event that stops the loop when set. Defaults to the
                tracker's own event, which `stop()` sets.
        """
        if shutdown is not None:
            if self._shutdown.is_set():
                shutdown.set()
            self._shutdown = shutdown

        self._running = True
        logger.info(
            "Block tracker started: reconcile=%s interval=%.1fs history=%d",
            self.reconcile,
            self.config.poll_interval,
            self.config.history_size,
        )

        try:
            while not self._shutdown.is_set():
                self._transition_to(TrackerState.WAITING)
                if await self._wait_for_tick():
                    break
                await self.poll_once()
        finally:
            self._running = False
            # The stop request is consumed; a caller's event is left as is.
            self._shutdown = asyncio.Event()
            self._transition_to(TrackerState.IDLE)
            logger.info("Block tracker stopped")

    def stop(self) -> None:
        """
        Request shutdown.

        The loop exits at its next tick wait.
        """
        self._shutdown.set()

    async def poll_once(self) -> TrackerEvent | None:
        """
        Run one poll: fetch the head, process it, deliver the event.

        Returns:
            The event handed to the consumer, or None when the head was
            unavailable, unchanged, already known or could not be reconciled.
        """
        self._transition_to(TrackerState.FETCHING)
        resting = TrackerState.WAITING if self._running else TrackerState.IDLE

        try:
            block = await self.client.get_head_block()
        except FetchError as exc:
            # Retried on the next tick.
            metrics.head_fetch_failures.inc()
            logger.debug("Head request failed: %s", exc)
            self._transition_to(resting)
            return None

        if block.hash == self._last_observed_hash:
            logger.debug("Head %s unchanged", block.hash)
            self._transition_to(resting)
            return None

        self._last_observed_hash = block.hash
        metrics.heads_observed.inc()
        number = getattr(block, "number", None)
        if number is not None:
            metrics.head_number.set(float(number))

        self._transition_to(TrackerState.RECONCILING)
        try:
            event = await self._process_head(block)
            if event is not None:
                await self._dispatch(event)
        finally:
            self._transition_to(resting)

        return event

    async def _process_head(self, block: Block) -> TrackerEvent | None:
        """Turn a new head into the event for the configured mode."""
        if not self.reconcile:
            return HeadEvent(block=block)

        try:
            with metrics.reconcile_time.time():
                event = await self._reconciler.reconcile(block)
        except BackfillDepthExceededError as exc:
            # The fork point is likely older than retained history. Later
            # heads fail the same way until the depth limit is raised.
            metrics.reconcile_failures.inc()
            logger.error(
                "Failed to reconcile %s: %s. Retained history may no longer connect to the "
                "chain; consider a larger --max-backfill-depth",
                block.hash,
                exc,
            )
            return None
        except ReconcileError as exc:
            # History is unchanged. A later head may bridge the gap.
            metrics.reconcile_failures.inc()
            logger.warning("Failed to reconcile %s: %s", block.hash, exc)
            return None

        if event is not None:
            self._record(event)
        return event

    def _record(self, event: ChainEvent) -> None:
        """Update metrics and log an applied chain change."""
        metrics.blocks_added.inc(len(event.added))
        metrics.blocks_removed.inc(len(event.removed))
        metrics.history_size.set(float(len(self.history)))

        if event.is_reorg:
            metrics.reorgs.inc()
            logger.info(
                "Reorg: removed=%d added=%d head=%s",
                len(event.removed),
                len(event.added),
                event.added[-1].hash,
            )
        else:
            logger.info("Chain advanced: added=%d head=%s", len(event.added), event.added[-1].hash)

    async def _dispatch(self, event: TrackerEvent) -> None:
        """Hand an event to the consumer, waiting until there is room."""
        if self.events.full():
            logger.debug("Consumer is behind; waiting to deliver event")
        await self.events.put(event)

    async def _wait_for_tick(self) -> bool:
        """
        Sleep for one poll interval.

        Returns:
            True if shutdown was requested during the wait.
        """
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=self.config.poll_interval)
        except TimeoutError:
            return False
        return True

    def _transition_to(self, new_state: TrackerState) -> None:
        """
        Move the loop to a new state.

        Raises:
            ValueError: If the transition is not allowed.
        """
        if new_state == self._state:
            return
        if not self._state.can_transition_to(new_state):
            raise ValueError(f"Invalid state transition: {self._state.name} -> {new_state.name}")
        self._state = new_state
