# invoice_filler/metrics.py
"""
Prometheus collectors for fill cycles.

Collectors are fetched from the global REGISTRY when they already exist, so
re-importing this module (tests, app reload) never raises a duplicate
registration error.
"""
from __future__ import annotations

from typing import Any, Callable

from prometheus_client import REGISTRY, Counter, Histogram


def _get_or_create(name: str, factory: Callable[..., Any], *args, **kwargs):
    # REGISTRY._names_to_collectors is internal API but widely used for this purpose.
    if name in REGISTRY._names_to_collectors:
        return REGISTRY._names_to_collectors[name]
    return factory(name, *args, **kwargs)


cycles_total = _get_or_create(
    "filler_cycles_total",
    Counter,
    "Processing cycles started",
)

cycle_failures_total = _get_or_create(
    "filler_cycle_failures_total",
    Counter,
    "Processing cycles aborted before invoice processing",
)

invoice_outcomes_total = _get_or_create(
    "filler_invoice_outcomes_total",
    Counter,
    "Terminal invoice outcomes by status",
    ["status"],
)

rebalances_total = _get_or_create(
    "filler_rebalances_total",
    Counter,
    "Rebalance attempts by result",
    ["result"],
)

balance_read_failures_total = _get_or_create(
    "filler_balance_read_failures_total",
    Counter,
    "Balance reads that failed and were omitted from the table",
    ["chain"],
)

cycle_duration_seconds = _get_or_create(
    "filler_cycle_duration_seconds",
    Histogram,
    "Wall time of a full processing cycle (seconds)",
    buckets=(1, 5, 10, 30, 60, 120, 300, 600),
)
