"""Prometheus metrics for notification dispatch.

Usage:
    from push_notifier.features.notifications.metrics import (
        notification_deliveries_total,
    )

    notification_deliveries_total.labels(channel="push", status="failed").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

notifications_received_total = Counter(
    "push_notifier_notifications_received_total",
    "Notifications received on watched paths",
    labelnames=["state"],
)

notifications_dropped_total = Counter(
    "push_notifier_notifications_dropped_total",
    "Notifications dropped before dispatch",
    labelnames=["reason"],
)
"""
Labels:
    reason: noise (not a notification), store_error (subscriber read failed)
"""

notification_deliveries_total = Counter(
    "push_notifier_deliveries_total",
    "Per-recipient delivery outcomes",
    labelnames=["channel", "status"],
)

push_subscribers_evicted_total = Counter(
    "push_notifier_push_subscribers_evicted_total",
    "Push subscribers removed after repeated send failures",
)

subscriber_store_errors_total = Counter(
    "push_notifier_subscriber_store_errors_total",
    "Subscriber store operations that failed",
    labelnames=["operation"],
)

connection_up = Gauge(
    "push_notifier_connection_up",
    "1 when the mail transport last verified or sent successfully, 0 when it failed",
)
