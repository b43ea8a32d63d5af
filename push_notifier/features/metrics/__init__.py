"""Metrics feature exposing the Prometheus scrape endpoint."""

from push_notifier.features.metrics.router import router

__all__ = ["router"]
