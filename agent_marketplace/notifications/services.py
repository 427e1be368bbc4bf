"""Helpers for creating notifications from anywhere in the marketplace.

Single creates raise on failure so callers decide what is fatal. Bulk helpers
count failures per recipient instead, because one bad row should not stop a
broadcast.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.db import transaction

from .models import Notification

logger = logging.getLogger(__name__)

User = get_user_model()


@dataclass(frozen=True)
class NotificationData:
    recipient_id: int
    notification_type: str
    title: str
    message: str
    data: dict[str, Any] | None = None


@dataclass
class BulkResult:
    successful: int = 0
    failed: int = 0
    created_ids: list[int] = field(default_factory=list)

    def as_dict(self) -> dict[str, int]:
        return {"successful": self.successful, "failed": self.failed}


def create_notification(item: NotificationData) -> Notification:
    return Notification.objects.create(
        recipient_id=item.recipient_id,
        notification_type=item.notification_type,
        title=item.title,
        message=item.message,
        data=item.data,
    )


def create_bulk_notifications(items: list[NotificationData]) -> BulkResult:
    result = BulkResult()
    for item in items:
        try:
            with transaction.atomic():
                notification = create_notification(item)
        except DatabaseError:
            logger.exception(
                "Failed to create %s notification for user %s",
                item.notification_type,
                item.recipient_id,
            )
            result.failed += 1
        else:
            result.successful += 1
            result.created_ids.append(notification.pk)
    return result


def notify_admins(
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> BulkResult:
    """Send a SYSTEM_ALERT to every active marketplace admin."""
    admin_ids = User.objects.filter(
        role=User.Role.ADMIN,
        is_active=True,
    ).values_list("id", flat=True)
    return create_bulk_notifications(
        [
            NotificationData(
                recipient_id=admin_id,
                notification_type=Notification.Type.SYSTEM_ALERT,
                title=title,
                message=message,
                data=data,
            )
            for admin_id in admin_ids
        ],
    )


def broadcast_promotion(
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> BulkResult:
    """Create PROMOTION notifications for active users in fixed-size batches."""
    batch_size = settings.NOTIFICATIONS_BROADCAST_BATCH_SIZE
    limit = settings.NOTIFICATIONS_BROADCAST_LIMIT
    user_ids = list(
        User.objects.filter(is_active=True)
        .order_by("id")
        .values_list("id", flat=True)[:limit],
    )

    total = BulkResult()
    for start in range(0, len(user_ids), batch_size):
        batch = user_ids[start : start + batch_size]
        result = create_bulk_notifications(
            [
                NotificationData(
                    recipient_id=user_id,
                    notification_type=Notification.Type.PROMOTION,
                    title=title,
                    message=message,
                    data=data,
                )
                for user_id in batch
            ],
        )
        total.successful += result.successful
        total.failed += result.failed
        total.created_ids.extend(result.created_ids)
        logger.info(
            "Promotion batch %s-%s: %s created, %s failed",
            start,
            start + len(batch),
            result.successful,
            result.failed,
        )
    return total


def unread_count(user) -> int:
    return Notification.objects.filter(recipient=user, is_read=False).count()
