"""Notifier HTTP endpoints.

Mounted under the application's API prefix (``/plugins/push-notifier``):

- GET    /status                   connection state and configured services
- GET    /keys                     resolved watch list
- POST   /subscribe/{id}           register a subscriber
- DELETE /unsubscribe/{id}         remove a subscriber
- GET    /vapid                    VAPID public key and subject
- PATCH  /push/{id}                push a notification to one subscriber

Error bodies are short plain-text phrases (see ``core.exceptions``).
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Response

from push_notifier.core.exceptions import (
    AuthenticationError,
    BadRequestException,
    ChannelUnavailableError,
    InternalServerException,
    NotFoundException,
    NotifierError,
    ServiceUnavailableException,
    StoreError,
    SubscriberNotFoundError,
)
from push_notifier.features.notifications.dependencies import EngineDep
from push_notifier.features.notifications.models import NotificationEvent, new_subscriber_record
from push_notifier.features.notifications.schemas import PushRequest, StatusResponse, VapidResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notifier"])


@router.get(
    "/status",
    response_model=StatusResponse,
    summary="Connection status",
    description="Verify the mail transport and list the configured delivery services",
)
async def get_status(engine: EngineDep) -> StatusResponse:
    connection, reason = await engine.check_connection()
    return StatusResponse(connection=connection, services=engine.services, reason=reason)


@router.get(
    "/keys",
    response_model=list[str],
    responses={500: {"description": "Watch list could not be resolved"}},
    summary="Watched paths",
)
async def get_keys(engine: EngineDep) -> list[str]:
    """Return the watch list with remote entries expanded and restart directives removed."""
    try:
        resolved = await engine.resolve_paths()
    except AuthenticationError as exc:
        raise InternalServerException(extra={"error": str(exc)}) from exc
    return list(resolved.watch_paths)


@router.post(
    "/subscribe/{subscriber_id}",
    responses={
        400: {"description": "Missing subscriber id or body is not a JSON object"},
        503: {"description": "Subscriber store unavailable"},
    },
    summary="Register a subscriber",
)
async def subscribe(
    subscriber_id: str,
    subscription: Annotated[dict[str, Any], Body()],
    engine: EngineDep,
) -> Response:
    """Store a subscriber.

    An id containing ``@`` registers an email subscriber; any other id
    registers a push subscriber whose body is the browser push
    subscription. Re-subscribing replaces the record and resets its
    failure count.
    """
    if not subscriber_id.strip():
        raise BadRequestException("400: invalid request")

    try:
        await engine.context.store.set(subscriber_id, new_subscriber_record(subscription))
    except StoreError as exc:
        raise ServiceUnavailableException(
            "503: cannot save subscription",
            extra={"subscriber_id": subscriber_id, "error": str(exc)},
        ) from exc

    logger.info("Subscriber '%s' registered", subscriber_id)
    return Response(status_code=200)


@router.delete(
    "/unsubscribe/{subscriber_id}",
    responses={
        400: {"description": "Missing subscriber id"},
        404: {"description": "Unknown subscriber"},
    },
    summary="Remove a subscriber",
)
async def unsubscribe(subscriber_id: str, engine: EngineDep) -> Response:
    if not subscriber_id.strip():
        raise BadRequestException("400: invalid request")

    try:
        await engine.context.store.delete(subscriber_id)
    except NotifierError as exc:
        raise NotFoundException(
            "404: unknown subscriber",
            extra={"subscriber_id": subscriber_id, "error": str(exc)},
        ) from exc

    logger.info("Subscriber '%s' removed", subscriber_id)
    return Response(status_code=200)


@router.get(
    "/vapid",
    response_model=VapidResponse,
    responses={
        404: {"description": "VAPID public key or subject not configured"},
        500: {"description": "Push service not configured"},
    },
    summary="VAPID details",
)
async def get_vapid(engine: EngineDep) -> VapidResponse:
    push = engine.context.push
    if push is None:
        raise InternalServerException()

    vapid = push.vapid
    if not vapid.public_key or not vapid.subject:
        raise NotFoundException()
    return VapidResponse(public_key=vapid.public_key, subject=vapid.subject)


@router.patch(
    "/push/{subscriber_id}",
    responses={
        400: {"description": "Body is not a notification"},
        404: {"description": "Subscriber not found"},
        500: {"description": "Subscriber's service not configured or store unavailable"},
    },
    summary="Push a notification to one subscriber",
)
async def push_notification(
    subscriber_id: str,
    request: PushRequest,
    engine: EngineDep,
) -> Response:
    """Deliver a notification to one subscriber, ignoring trigger states."""
    notification = NotificationEvent(
        state=request.state,
        method=request.method,
        message=request.message,
    )
    try:
        await engine.push_to(subscriber_id, notification)
    except SubscriberNotFoundError as exc:
        raise NotFoundException(extra={"subscriber_id": subscriber_id, "matches": exc.matches}) from exc
    except (ChannelUnavailableError, StoreError) as exc:
        raise InternalServerException(extra={"subscriber_id": subscriber_id, "error": str(exc)}) from exc
    return Response(status_code=200)
