"""Test helpers for blocktracker unit tests."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import TypeVar

from .builders import hashes, make_block, make_branch, make_chain, make_hash
from .mocks import MockBlockClient

_T = TypeVar("_T")


def run_async(coro: Coroutine[object, object, _T]) -> _T:
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


__all__ = [
    # Builders
    "hashes",
    "make_block",
    "make_branch",
    "make_chain",
    "make_hash",
    # Mocks
    "MockBlockClient",
    # Async utilities
    "run_async",
]
