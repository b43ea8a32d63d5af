"""Notification dispatch feature.

Watches Signal K notification paths and fans each notification out to
self-registered subscribers over email or web push.

Architecture:
    - Paths: watch-list resolution (literal paths, API URLs, restart directives)
    - Partition: subscriber records split into mail and push subscribers
    - Filters: per-channel trigger states
    - Channels: mail (aiosmtplib) and push (pywebpush) adapters
    - Failures: push failure counting and eviction
    - Engine: subscriptions, dispatch and lifecycle
    - Router: subscribe/unsubscribe/status/vapid/push endpoints
"""
