from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import serializers

from agent_marketplace.chat.models import ChatMessage
from agent_marketplace.chat.models import ChatSession
from agent_marketplace.users.api.serializers import UserSummarySerializer

User = get_user_model()


class ChatMessageSerializer(serializers.ModelSerializer):
    """Read-only: messages are only ever created by the realtime relay."""

    sender = UserSummarySerializer(read_only=True)
    type = serializers.CharField(source="message_type", read_only=True)

    class Meta:
        model = ChatMessage
        fields = ("id", "chat_session", "sender", "content", "type", "timestamp")
        read_only_fields = fields


class ChatSessionSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    assigned_agent = UserSummarySerializer(read_only=True)
    last_message = ChatMessageSerializer(read_only=True)

    class Meta:
        model = ChatSession
        fields = (
            "id",
            "user",
            "assigned_agent",
            "subject",
            "status",
            "last_activity",
            "last_message",
            "created_at",
        )
        read_only_fields = (
            "id",
            "user",
            "assigned_agent",
            "status",
            "last_activity",
            "last_message",
            "created_at",
        )


class ChatSessionCreateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ChatSession
        fields = ("id", "subject")
        read_only_fields = ("id",)


class ChatAssignSerializer(serializers.Serializer):
    agent_id = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(
            is_active=True,
            role__in=[User.Role.SELLER, User.Role.ADMIN],
        ),
        error_messages={"does_not_exist": "Unknown or ineligible support agent."},
    )
