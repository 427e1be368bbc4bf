"""Persistence boundary used by the realtime chat relay.

Every method runs its ORM work through ``database_sync_to_async`` so the
relay never touches the database from the event loop. Failures propagate
unchanged; the relay decides which ones are fatal.
"""

from __future__ import annotations

from typing import Any

from channels.db import database_sync_to_async
from django.utils import timezone

from agent_marketplace.chat.models import ChatMessage
from agent_marketplace.chat.models import ChatSession
from agent_marketplace.notifications.models import Notification
from agent_marketplace.notifications.services import NotificationData
from agent_marketplace.notifications.services import create_notification


class ChatStore:
    async def find_session(self, chat_session_id: int) -> ChatSession | None:
        return await database_sync_to_async(self._find_session)(chat_session_id)

    async def create_message(
        self,
        *,
        chat_session_id: int,
        sender_id: int,
        content: str,
        message_type: str,
    ) -> ChatMessage:
        return await database_sync_to_async(self._create_message)(
            chat_session_id,
            sender_id,
            content,
            message_type,
        )

    async def update_session_activity(
        self,
        chat_session_id: int,
        message: ChatMessage,
    ) -> None:
        await database_sync_to_async(self._update_session_activity)(
            chat_session_id,
            message,
        )

    async def create_notification(
        self,
        *,
        recipient_id: int,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
        notification_type: str = Notification.Type.CHAT_MESSAGE,
    ) -> Notification:
        return await database_sync_to_async(create_notification)(
            NotificationData(
                recipient_id=recipient_id,
                notification_type=notification_type,
                title=title,
                message=message,
                data=data,
            ),
        )

    @staticmethod
    def _find_session(chat_session_id: int) -> ChatSession | None:
        return ChatSession.objects.filter(pk=chat_session_id).first()

    @staticmethod
    def _create_message(
        chat_session_id: int,
        sender_id: int,
        content: str,
        message_type: str,
    ) -> ChatMessage:
        message = ChatMessage.objects.create(
            chat_session_id=chat_session_id,
            sender_id=sender_id,
            content=content,
            message_type=message_type,
            timestamp=timezone.now(),
        )
        # Sender display fields are needed on the event loop; load them here
        return ChatMessage.objects.select_related("sender").get(pk=message.pk)

    @staticmethod
    def _update_session_activity(chat_session_id: int, message: ChatMessage) -> None:
        ChatSession.objects.filter(pk=chat_session_id).update(
            last_activity=message.timestamp,
            last_message_id=message.pk,
        )
