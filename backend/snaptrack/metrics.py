"""Prometheus metrics for polling and cache observability."""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


POLL_FETCHES_TOTAL = Counter(
    "snaptrack_poll_fetches_total",
    "Snapshot status fetches by outcome",
    ["outcome"],
)

POLL_FETCH_LATENCY_SECONDS = Histogram(
    "snaptrack_poll_fetch_latency_seconds",
    "Snapshot status fetch latency",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)

ACTIVE_POLLING_ENTRIES = Gauge(
    "snaptrack_active_polling_entries",
    "Polling cache entries with at least one subscriber",
)

SNAPSHOT_DELETES_TOTAL = Counter(
    "snaptrack_snapshot_deletes_total",
    "Snapshot delete actions by outcome",
    ["outcome"],
)

CACHE_INVALIDATIONS_TOTAL = Counter(
    "snaptrack_cache_invalidations_total",
    "Query cache invalidations by key prefix",
    ["key"],
)

BOOTSTRAP_LOOKUPS_TOTAL = Counter(
    "snaptrack_bootstrap_lookups_total",
    "Server-side bootstrap lookups by outcome",
    ["outcome"],
)
