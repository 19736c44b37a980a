from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter

REGISTRY = CollectorRegistry()

# Auth (register/login/refresh/logout) by outcome
auth_events = Counter(
    "budget_sync_auth_events_total",
    "Session protocol calls by event and outcome",
    labelnames=("event", "outcome"),
    registry=REGISTRY,
)

# Sync replays applied (including no-op update/delete)
sync_operations = Counter(
    "budget_sync_sync_operations_total",
    "Sync operations applied by kind",
    labelnames=("kind",),
    registry=REGISTRY,
)

rate_limited = Counter(
    "budget_sync_rate_limited_total",
    "Requests rejected by the rate limiter",
    labelnames=("bucket",),
    registry=REGISTRY,
)
