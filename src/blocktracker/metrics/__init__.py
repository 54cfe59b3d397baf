"""
Metrics module for observability.

Provides counters, gauges, and histograms describing how the tracker follows
the chain. Exposes metrics in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    ancestors_fetched,
    blocks_added,
    blocks_removed,
    generate_metrics,
    head_fetch_failures,
    head_number,
    heads_observed,
    history_size,
    reconcile_failures,
    reconcile_time,
    reorgs,
)

__all__ = [
    "REGISTRY",
    "ancestors_fetched",
    "blocks_added",
    "blocks_removed",
    "generate_metrics",
    "head_fetch_failures",
    "head_number",
    "heads_observed",
    "history_size",
    "reconcile_failures",
    "reconcile_time",
    "reorgs",
]
