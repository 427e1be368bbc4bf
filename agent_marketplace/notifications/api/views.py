from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any

from django.contrib.auth import get_user_model
from django.utils import timezone
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from agent_marketplace.notifications.models import Notification
from agent_marketplace.notifications.services import NotificationData
from agent_marketplace.notifications.services import create_bulk_notifications
from agent_marketplace.notifications.services import unread_count
from agent_marketplace.notifications.tasks import broadcast_promotion_task
from agent_marketplace.users.api.permissions import IsMarketplaceAdmin

from .filters import NotificationFilter
from .serializers import NotificationCreateSerializer
from .serializers import NotificationReadSerializer
from .serializers import NotificationSerializer
from .serializers import PromotionBroadcastSerializer

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable

User = get_user_model()


def _coerce_receivers_to_user_ids(receivers: Iterable[Any]) -> set[int]:
    user_ids: set[int] = set()
    for r in receivers:
        if isinstance(r, bool) or r is None:
            continue
        if isinstance(r, int):
            user_ids.add(int(r))
            continue
        if isinstance(r, str) and r.strip().isdigit():
            user_ids.add(int(r.strip()))
    return user_ids


def _resolve_recipients(data: dict[str, Any]) -> set[int]:
    active = User.objects.filter(is_active=True)
    if "recipient_id" in data:
        return set(
            active.filter(pk=data["recipient_id"]).values_list("id", flat=True),
        )
    if "role" in data:
        return set(active.filter(role=data["role"]).values_list("id", flat=True))

    receivers = data["receivers"]
    if any(isinstance(r, str) and r.strip().upper() == "ALL" for r in receivers):
        return set(active.values_list("id", flat=True))
    wanted = _coerce_receivers_to_user_ids(receivers)
    return set(active.filter(pk__in=wanted).values_list("id", flat=True))


@extend_schema_view(
    list=extend_schema(tags=["Notifications"]),
    create=extend_schema(
        tags=["Notifications"],
        request=NotificationCreateSerializer,
    ),
    partial_update=extend_schema(
        tags=["Notifications"],
        request=NotificationReadSerializer,
    ),
    destroy=extend_schema(tags=["Notifications"]),
)
class NotificationViewSet(
    mixins.ListModelMixin,
    mixins.DestroyModelMixin,
    GenericViewSet,
):
    """Notifications for the authenticated user.

    - list: request.user's notifications plus the unread count
    - create: notifications for target recipients (admin only)
    - partial_update: flip the read flag
    - destroy: deletes a notification (recipient only)
    - mark_all_read / unread_count / broadcast (admin only, queued)
    """

    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer
    filterset_class = NotificationFilter

    def get_queryset(self):
        return Notification.objects.filter(recipient=self.request.user)

    def get_permissions(self):
        if self.action in {"create", "broadcast"}:
            return [IsAuthenticated(), IsMarketplaceAdmin()]
        return [p() for p in self.permission_classes]

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        response.data["unread_count"] = unread_count(request.user)
        return response

    def create(self, request, *args, **kwargs):
        serializer = NotificationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        recipient_ids = _resolve_recipients(data)
        if not recipient_ids:
            return Response(
                {"detail": "No recipients resolved from payload."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        result = create_bulk_notifications(
            [
                NotificationData(
                    recipient_id=rid,
                    notification_type=data["notification_type"],
                    title=data["title"],
                    message=data["message"],
                    data=data.get("data"),
                )
                for rid in sorted(recipient_ids)
            ],
        )
        return Response(result.as_dict(), status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        notification = self.get_object()
        serializer = NotificationReadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        notification.set_read(serializer.validated_data["read"])
        return Response(NotificationSerializer(notification).data)

    @extend_schema(tags=["Notifications"], request=None, responses={204: None})
    @action(detail=False, methods=["post"], url_path="mark-all-read")
    def mark_all_read(self, request):
        self.get_queryset().filter(is_read=False).update(
            is_read=True,
            read_at=timezone.now(),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Notifications"])
    @action(detail=False, methods=["get"], url_path="unread-count")
    def count_unread(self, request):
        return Response({"unread_count": unread_count(request.user)})

    @extend_schema(tags=["Notifications"], request=PromotionBroadcastSerializer)
    @action(detail=False, methods=["post"])
    def broadcast(self, request):
        serializer = PromotionBroadcastSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = broadcast_promotion_task.delay(
            data["title"],
            data["message"],
            data.get("data"),
        )
        return Response({"task_id": result.id}, status=status.HTTP_202_ACCEPTED)
