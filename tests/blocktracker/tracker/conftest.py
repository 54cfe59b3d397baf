"""Shared fixtures for tracker tests."""

from __future__ import annotations

import pytest

from blocktracker.tracker import HistoryBuffer, Reconciler
from tests.blocktracker.helpers import MockBlockClient


@pytest.fixture
def client() -> MockBlockClient:
    """Provide an empty mock block source."""
    return MockBlockClient()


@pytest.fixture
def history() -> HistoryBuffer:
    """Provide an empty history with the default capacity."""
    return HistoryBuffer()


@pytest.fixture
def reconciler(history: HistoryBuffer, client: MockBlockClient) -> Reconciler:
    """Provide a reconciler bound to the history and mock source."""
    return Reconciler(history=history, client=client)
