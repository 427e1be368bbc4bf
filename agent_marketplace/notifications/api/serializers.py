from __future__ import annotations

from typing import Any

from django.contrib.auth import get_user_model
from rest_framework import serializers

from agent_marketplace.notifications.models import Notification

User = get_user_model()


class NotificationSerializer(serializers.ModelSerializer):
    """Read serializer for notifications."""

    type = serializers.CharField(source="notification_type", read_only=True)
    read = serializers.BooleanField(source="is_read", read_only=True)

    class Meta:
        model = Notification
        fields = (
            "id",
            "recipient",
            "title",
            "message",
            "type",
            "data",
            "read",
            "read_at",
            "created_at",
        )
        read_only_fields = fields


class NotificationReadSerializer(serializers.Serializer):
    read = serializers.BooleanField()


class NotificationCreateSerializer(serializers.Serializer):
    """Create serializer.

    Supports creating one Notification per recipient.

    Accepted targeting forms (exactly one is required):
    - recipient_id: int
    - role: str (every active user with that marketplace role)
    - receivers: list[int | str]
      - int or numeric str: user id
      - "ALL": every active user
    """

    title = serializers.CharField(max_length=255)
    message = serializers.CharField()
    notification_type = serializers.ChoiceField(
        choices=Notification.Type.choices,
        required=False,
        default=Notification.Type.ADMIN_MESSAGE,
    )
    data = serializers.JSONField(required=False, allow_null=True, default=None)

    # Accept either int or numeric string, and tolerate "" (treated as missing).
    recipient_id = serializers.CharField(required=False, allow_blank=True)
    role = serializers.ChoiceField(
        choices=User.Role.choices,
        required=False,
        allow_blank=True,
    )
    receivers = serializers.ListField(child=serializers.JSONField(), required=False)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        recipient_id = attrs.get("recipient_id")
        if isinstance(recipient_id, str):
            recipient_id = recipient_id.strip()
            if not recipient_id:
                attrs.pop("recipient_id", None)
            elif recipient_id.isdigit():
                attrs["recipient_id"] = int(recipient_id)
            else:
                msg = "Must be an integer."
                raise serializers.ValidationError({"recipient_id": msg})

        if not attrs.get("role"):
            attrs.pop("role", None)

        receivers = attrs.get("receivers")
        if isinstance(receivers, list) and len(receivers) == 0:
            attrs.pop("receivers", None)

        targets = [
            "recipient_id" in attrs,
            "role" in attrs,
            "receivers" in attrs,
        ]
        if sum(targets) != 1:
            msg = "Provide exactly one of recipient_id, role, receivers."
            raise serializers.ValidationError(msg)
        return attrs


class PromotionBroadcastSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    message = serializers.CharField()
    data = serializers.JSONField(required=False, allow_null=True, default=None)
