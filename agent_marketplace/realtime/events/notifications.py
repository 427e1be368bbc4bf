from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from agent_marketplace.realtime.socketio import emit_event_to_user

if TYPE_CHECKING:  # import for type checking only
    from agent_marketplace.notifications.models import Notification

logger = logging.getLogger(__name__)


def build_notification_payload(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.notification_type,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "read": notification.is_read,
        "createdAt": notification.created_at.isoformat()
        if notification.created_at
        else None,
    }


def publish_notification_created(notification: Notification) -> None:
    """Publish a newly created Notification to the recipient in realtime.

    A recipient with no live connection simply misses the push; the stored
    notification is still listed by the REST API.
    """

    payload = build_notification_payload(notification)
    try:
        emit_event_to_user(notification.recipient_id, "notification", payload)
    except Exception:
        logger.exception(
            "Realtime push failed for notification %s", notification.id
        )
