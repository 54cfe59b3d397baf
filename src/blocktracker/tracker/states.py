"""Tracker worker state machine."""

from __future__ import annotations

from enum import Enum, auto


class TrackerState(Enum):
    """
    Phases of the tracker's polling loop.

    State Machine Diagram
    ---------------------
    ::

        IDLE --> WAITING --> FETCHING --> RECONCILING
                   ^            |              |
                   +------------+--------------+

    The loop leaves WAITING for FETCHING on every tick. A failed or repeated
    head goes straight back to WAITING; a new head passes through
    RECONCILING (which includes the hand-off to the consumer). IDLE is the
    state before start and after shutdown. A single poll driven outside the
    loop starts and ends in IDLE.
    """

    IDLE = auto()
    """Not running: before start or after shutdown."""

    WAITING = auto()
    """Sleeping until the next poll tick."""

    FETCHING = auto()
    """Requesting the current head from the remote source."""

    RECONCILING = auto()
    """Folding a new head into history and delivering the event."""

    def can_transition_to(self, target: TrackerState) -> bool:
        """Check if the loop may move from this state to `target`."""
        return target in _VALID_TRANSITIONS.get(self, set())


_VALID_TRANSITIONS: dict[TrackerState, set[TrackerState]] = {
    TrackerState.IDLE: {TrackerState.WAITING, TrackerState.FETCHING},
    TrackerState.WAITING: {TrackerState.FETCHING, TrackerState.IDLE},
    TrackerState.FETCHING: {TrackerState.RECONCILING, TrackerState.WAITING, TrackerState.IDLE},
    TrackerState.RECONCILING: {TrackerState.WAITING, TrackerState.IDLE},
}
"""Valid state transitions for the polling loop."""
