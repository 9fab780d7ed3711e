"""Prometheus counters for change tracking and webhook delivery."""

from __future__ import annotations

from prometheus_client import Counter

webhook_deliveries_total = Counter(
    "padhooks_webhook_deliveries_total",
    "Webhook POST attempts by outcome.",
    ["success"],
)

flushes_total = Counter(
    "padhooks_flushes_total",
    "Non-empty batches drained from the change ledger.",
)

dropped_events_total = Counter(
    "padhooks_dropped_events_total",
    "Host events discarded before reaching the change ledger.",
    ["reason"],
)
