"""
Metric registry using prometheus_client.

Provides pre-defined metrics for the head tracker.
Exposes metrics in Prometheus text format via the /metrics endpoint.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Dedicated registry, so default Python process metrics stay out of the output.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Chain View
# -----------------------------------------------------------------------------

head_number = Gauge(
    "blocktracker_head_number",
    "Number of the most recently observed head block",
    registry=REGISTRY,
)

history_size = Gauge(
    "blocktracker_history_size",
    "Blocks currently retained in the history buffer",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Polling
# -----------------------------------------------------------------------------

heads_observed = Counter(
    "blocktracker_heads_observed_total",
    "Distinct heads returned by the remote source",
    registry=REGISTRY,
)

head_fetch_failures = Counter(
    "blocktracker_head_fetch_failures_total",
    "Head requests that failed and were retried on the next tick",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Reconciliation
# -----------------------------------------------------------------------------

blocks_added = Counter(
    "blocktracker_blocks_added_total",
    "Blocks that joined the canonical chain",
    registry=REGISTRY,
)

blocks_removed = Counter(
    "blocktracker_blocks_removed_total",
    "Blocks dropped from the canonical chain by reorgs",
    registry=REGISTRY,
)

reorgs = Counter(
    "blocktracker_reorgs_total",
    "Reconciliations that rolled back at least one block",
    registry=REGISTRY,
)

ancestors_fetched = Counter(
    "blocktracker_ancestors_fetched_total",
    "Parent blocks fetched to bridge gaps",
    registry=REGISTRY,
)

reconcile_failures = Counter(
    "blocktracker_reconcile_failures_total",
    "Observed heads that could not be reconciled",
    registry=REGISTRY,
)

reconcile_time = Histogram(
    "blocktracker_reconcile_seconds",
    "Reconciliation duration, including ancestor fetches",
    buckets=(0.001, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output as bytes.
    """
    return generate_latest(REGISTRY)
