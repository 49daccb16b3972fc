"""Prometheus counters fed by account event listeners."""

from __future__ import annotations

from prometheus_client import Counter

from .domain.contracts import AccountEvent

ACCOUNT_EVENTS = Counter(
    "account_events_total",
    "Persisted account mutations by event type.",
    ["event_type"],
)


def record_event(event: AccountEvent) -> None:
    ACCOUNT_EVENTS.labels(event_type=event.event_type).inc()
