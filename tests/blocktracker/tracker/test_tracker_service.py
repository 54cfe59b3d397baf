"""Tests for the polling block tracker."""

from __future__ import annotations

import asyncio
import logging

import pytest
from pydantic import ValidationError

from blocktracker.metrics import REGISTRY
from blocktracker.tracker import (
    BlockTracker,
    ChainEvent,
    HeadEvent,
    TrackerConfig,
    TrackerState,
)
from tests.blocktracker.helpers import (
    MockBlockClient,
    hashes,
    make_block,
    make_chain,
    make_hash,
    run_async,
)

FAST = TrackerConfig(poll_interval=0.01)
"""Settings that let the loop tick quickly in tests."""


def _sample(name: str) -> float:
    """Read a metric value from the tracker registry."""
    return REGISTRY.get_sample_value(name) or 0.0


class TestConstruction:
    """Tests for tracker creation."""

    def test_initial_state(self, client: MockBlockClient) -> None:
        """A new tracker is idle with empty history and no observed head."""
        tracker = BlockTracker(client=client)

        assert tracker.state == TrackerState.IDLE
        assert not tracker.is_running
        assert tracker.last_observed_hash is None
        assert tracker.history.is_empty
        assert tracker.events.maxsize == 1

    def test_history_size_from_config(self, client: MockBlockClient) -> None:
        """The history capacity follows the configuration."""
        tracker = BlockTracker(client=client, config=TrackerConfig(history_size=3))

        assert tracker.history.capacity == 3

    def test_invalid_config_is_rejected(self) -> None:
        """Non-positive settings fail validation."""
        with pytest.raises(ValidationError):
            TrackerConfig(poll_interval=0)
        with pytest.raises(ValidationError):
            TrackerConfig(history_size=0)


class TestHeadOnlyMode:
    """Tests for forwarding heads without reconciliation."""

    def test_new_head_is_forwarded(self, client: MockBlockClient) -> None:
        """Each new head becomes a head event on the queue."""
        tracker = BlockTracker(client=client)
        client.queue_heads(make_block(1))

        event = run_async(tracker.poll_once())

        assert event == HeadEvent(block=make_block(1))
        assert tracker.events.get_nowait() == event
        assert tracker.last_observed_hash == make_hash(1)
        assert tracker.state == TrackerState.IDLE

    def test_repeated_head_is_skipped(self, client: MockBlockClient) -> None:
        """The same head twice in a row yields a single event."""
        tracker = BlockTracker(client=client)
        client.queue_heads(make_block(1), make_block(1))

        first = run_async(tracker.poll_once())
        second = run_async(tracker.poll_once())

        assert first is not None
        assert second is None
        assert tracker.events.qsize() == 1

    def test_gaps_are_not_filled(self, client: MockBlockClient) -> None:
        """Head-only mode never fetches ancestors."""
        tracker = BlockTracker(client=client)
        client.queue_heads(make_block(1), make_block(5))

        run_async(tracker.poll_once())
        tracker.events.get_nowait()
        event = run_async(tracker.poll_once())

        assert event == HeadEvent(block=make_block(5))
        assert client.hash_requests == []
        assert tracker.history.is_empty


class TestReconcilingMode:
    """Tests for polls that fold heads into history."""

    def _poll_all(self, tracker: BlockTracker, polls: int) -> list[ChainEvent | HeadEvent | None]:
        """Poll repeatedly, draining the queue after each delivered event."""
        results = []
        for _ in range(polls):
            event = run_async(tracker.poll_once())
            if event is not None:
                assert tracker.events.get_nowait() is event
            results.append(event)
        return results

    def test_linear_chain(self, client: MockBlockClient) -> None:
        """Consecutive heads produce addition-only events."""
        tracker = BlockTracker(client=client, reconcile=True)
        client.queue_heads(*make_chain(1, 3))

        events = self._poll_all(tracker, 3)

        assert events == [ChainEvent(added=(block,)) for block in make_chain(1, 3)]
        assert hashes(tracker.history) == [make_hash(1), make_hash(2), make_hash(3)]

    def test_reorg_is_reported(self, client: MockBlockClient) -> None:
        """A competing head rolls back the old tip in one event."""
        tracker = BlockTracker(client=client, reconcile=True)
        sibling = make_block(0x30, parent=2, number=3)
        client.queue_heads(*make_chain(1, 3), sibling)

        events = self._poll_all(tracker, 4)

        assert events[-1] == ChainEvent(added=(sibling,), removed=(make_block(3),))

    def test_missed_heads_are_backfilled(self, client: MockBlockClient) -> None:
        """Blocks skipped between two polls are fetched and reported."""
        tracker = BlockTracker(client=client, reconcile=True)
        client.add_blocks(make_chain(2, 3))
        client.queue_heads(make_block(1), make_block(4))

        events = self._poll_all(tracker, 2)

        assert events[-1] is not None
        assert hashes(events[-1].added) == [make_hash(2), make_hash(3), make_hash(4)]

    def test_reconcile_failure_delivers_nothing(self, client: MockBlockClient) -> None:
        """An unresolvable gap is logged and the history is kept."""
        tracker = BlockTracker(client=client, reconcile=True)
        client.queue_heads(make_block(1), make_block(4))
        failures = _sample("blocktracker_reconcile_failures_total")

        events = self._poll_all(tracker, 2)

        assert events[-1] is None
        assert tracker.events.empty()
        assert hashes(tracker.history) == [make_hash(1)]
        assert _sample("blocktracker_reconcile_failures_total") == failures + 1

    def test_failed_head_is_not_retried_until_it_changes(self, client: MockBlockClient) -> None:
        """The observed hash is recorded even when reconciliation fails."""
        tracker = BlockTracker(client=client, reconcile=True)
        client.queue_heads(make_block(1), make_block(4))

        self._poll_all(tracker, 2)
        requests = len(client.hash_requests)
        client.add_blocks(make_chain(2, 3))
        repeated = run_async(tracker.poll_once())

        assert tracker.last_observed_hash == make_hash(4)
        assert repeated is None
        assert len(client.hash_requests) == requests

    def test_next_head_bridges_earlier_failure(self, client: MockBlockClient) -> None:
        """A later head recovers once its ancestors are available."""
        tracker = BlockTracker(client=client, reconcile=True)
        client.queue_heads(make_block(1), make_block(4), make_block(5))

        self._poll_all(tracker, 2)
        client.add_blocks(make_chain(2, 4))
        (event,) = self._poll_all(tracker, 1)

        assert event is not None
        assert hashes(event.added) == [make_hash(i) for i in range(2, 6)]


class TestHeadFetchFailures:
    """Tests for failed head requests."""

    def test_failure_is_swallowed(self, client: MockBlockClient) -> None:
        """A failed head request produces no event and no state change."""
        tracker = BlockTracker(client=client, reconcile=True)
        client.queue_heads(None)
        failures = _sample("blocktracker_head_fetch_failures_total")

        event = run_async(tracker.poll_once())

        assert event is None
        assert tracker.last_observed_hash is None
        assert tracker.events.empty()
        assert tracker.state == TrackerState.IDLE
        assert _sample("blocktracker_head_fetch_failures_total") == failures + 1

    def test_next_poll_recovers(self, client: MockBlockClient) -> None:
        """The head is picked up on the following tick."""
        tracker = BlockTracker(client=client, reconcile=True)
        client.queue_heads(None, make_block(1))

        run_async(tracker.poll_once())
        event = run_async(tracker.poll_once())

        assert event == ChainEvent(added=(make_block(1),))


class TestBackpressure:
    """Tests for the single-slot hand-off to the consumer."""

    def test_poll_waits_for_consumer(self, client: MockBlockClient) -> None:
        """A second event waits until the first one has been taken."""
        tracker = BlockTracker(client=client)
        client.queue_heads(make_block(1), make_block(2))

        async def scenario() -> None:
            await tracker.poll_once()
            second = asyncio.create_task(tracker.poll_once())
            await asyncio.sleep(0.01)

            assert not second.done()
            assert tracker.state == TrackerState.RECONCILING

            assert tracker.events.get_nowait() == HeadEvent(block=make_block(1))
            await asyncio.wait_for(second, timeout=1.0)
            assert tracker.events.get_nowait() == HeadEvent(block=make_block(2))

        run_async(scenario())


class TestLifecycle:
    """Tests for the polling loop."""

    def test_loop_delivers_events_until_stopped(self, client: MockBlockClient) -> None:
        """The loop polls on every tick and exits when stopped."""
        client.queue_heads(*make_chain(1, 3))

        async def scenario() -> list[ChainEvent | HeadEvent]:
            tracker = BlockTracker(client=client, reconcile=True, config=FAST)
            task = asyncio.create_task(tracker.start())
            received = [
                await asyncio.wait_for(tracker.events.get(), timeout=1.0) for _ in range(3)
            ]
            assert tracker.is_running

            tracker.stop()
            await asyncio.wait_for(task, timeout=1.0)

            assert not tracker.is_running
            assert tracker.state == TrackerState.IDLE
            return received

        received = run_async(scenario())

        assert [event.added[0].hash for event in received] == [
            make_hash(1),
            make_hash(2),
            make_hash(3),
        ]

    def test_external_shutdown_event(self, client: MockBlockClient) -> None:
        """A shutdown event set before start prevents any poll."""
        tracker = BlockTracker(client=client, config=FAST)

        async def scenario() -> None:
            shutdown = asyncio.Event()
            shutdown.set()
            await tracker.start(shutdown)

        run_async(scenario())

        assert client.head_requests == 0
        assert tracker.state == TrackerState.IDLE

    def test_loop_survives_failures(self, client: MockBlockClient) -> None:
        """Failed head requests do not stop the loop."""
        client.queue_heads(None, None, make_block(1))

        async def scenario() -> HeadEvent | ChainEvent:
            tracker = BlockTracker(client=client, config=FAST)
            task = asyncio.create_task(tracker.start())
            event = await asyncio.wait_for(tracker.events.get(), timeout=1.0)
            tracker.stop()
            await asyncio.wait_for(task, timeout=1.0)
            return event

        event = run_async(scenario())

        assert event == HeadEvent(block=make_block(1))
        assert client.head_requests >= 3

    def test_restart_after_stop(self, client: MockBlockClient) -> None:
        """A stopped tracker polls again when started a second time."""
        client.queue_heads(make_block(1))

        async def scenario() -> list[HeadEvent | ChainEvent]:
            tracker = BlockTracker(client=client, config=FAST)
            received = []
            for label in (1, 2):
                if label == 2:
                    client.queue_heads(make_block(2))
                task = asyncio.create_task(tracker.start())
                received.append(await asyncio.wait_for(tracker.events.get(), timeout=1.0))
                tracker.stop()
                await asyncio.wait_for(task, timeout=1.0)
            return received

        received = run_async(scenario())

        assert received == [HeadEvent(block=make_block(1)), HeadEvent(block=make_block(2))]

    def test_stop_before_start_is_honoured(self, client: MockBlockClient) -> None:
        """A stop requested before start carries over to a caller's shutdown event."""
        tracker = BlockTracker(client=client, config=FAST)
        tracker.stop()

        async def scenario() -> bool:
            shutdown = asyncio.Event()
            await asyncio.wait_for(tracker.start(shutdown), timeout=1.0)
            return shutdown.is_set()

        assert run_async(scenario()) is True
        assert client.head_requests == 0


class TestFailureLogging:
    """Tests for how reconciliation failures are reported."""

    def test_depth_limit_is_logged_as_error(
        self, client: MockBlockClient, caplog: pytest.LogCaptureFixture
    ) -> None:
        """History that no longer connects to the chain is reported loudly."""
        tracker = BlockTracker(
            client=client, reconcile=True, config=TrackerConfig(max_backfill_depth=1)
        )
        client.add_blocks(make_chain(2, 3))
        client.queue_heads(make_block(1), make_block(4))

        with caplog.at_level(logging.WARNING, logger="blocktracker.tracker.service"):
            run_async(tracker.poll_once())
            run_async(tracker.poll_once())

        errors = [record for record in caplog.records if record.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "--max-backfill-depth" in errors[0].getMessage()

    def test_missing_parent_is_logged_as_warning(
        self, client: MockBlockClient, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A single missing ancestor is a warning; the next head may recover."""
        tracker = BlockTracker(client=client, reconcile=True)
        client.queue_heads(make_block(1), make_block(4))

        with caplog.at_level(logging.WARNING, logger="blocktracker.tracker.service"):
            run_async(tracker.poll_once())
            run_async(tracker.poll_once())

        levels = [record.levelno for record in caplog.records]
        assert levels == [logging.WARNING]
