"""Message construction from notifications.

Both builders are pure: the same (notification, path) always yields the
same message, and the notification is never modified.
"""

from __future__ import annotations

from push_notifier.features.notifications.models import (
    MailMessage,
    NotificationEvent,
    PushMessage,
)

ISSUED_FORMAT = "%a %b %d %Y %H:%M:%S %Z"


def notification_title(notification: NotificationEvent, path: str | None = None) -> str:
    """``"<STATE> notification"``, suffixed with ``" on <path>"`` when a path is given."""
    title = f"{notification.state.value.upper()} notification"
    if path:
        title += f" on {path}"
    return title


def build_mail_message(notification: NotificationEvent, path: str | None = None) -> MailMessage:
    return MailMessage(
        subject=notification_title(notification, path),
        text=notification.message,
    )


def build_push_message(notification: NotificationEvent, path: str | None = None) -> PushMessage:
    """Build the push payload.

    The body embeds the message and the time the notification was issued.
    """
    issued = notification.timestamp
    return PushMessage(
        title=notification_title(notification, path),
        options={
            "id": path or "",
            "body": f"{notification.message}\nIssued on {issued.strftime(ISSUED_FORMAT)}",
            "timestamp": int(issued.timestamp() * 1000),
        },
    )
