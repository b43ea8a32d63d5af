"""Prometheus metrics endpoint.

Endpoints:
    GET /metrics - Prometheus scrape endpoint

Metrics Exposed:
    - push_notifier_notifications_received_total - Notifications by state
    - push_notifier_notifications_dropped_total - Dropped before dispatch, by reason
    - push_notifier_deliveries_total - Per-recipient outcomes by channel and status
    - push_notifier_push_subscribers_evicted_total - Evictions after repeated failures
    - push_notifier_subscriber_store_errors_total - Failed store operations
    - push_notifier_connection_up - Mail transport reachability
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics in text exposition format."""
    data = generate_latest(REGISTRY)
    return Response(
        content=data,
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
