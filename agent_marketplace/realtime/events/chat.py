from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any

from agent_marketplace.users.api.serializers import UserSummarySerializer

if TYPE_CHECKING:  # import for type checking only
    from agent_marketplace.chat.models import ChatMessage


def build_message_payload(message: ChatMessage) -> dict[str, Any]:
    """Full ``new_message`` payload, sender display fields included.

    ``message.sender`` must already be loaded; this runs on the event loop.
    """
    return {
        "id": message.id,
        "chatId": message.chat_session_id,
        "content": message.content,
        "type": message.message_type,
        "timestamp": message.timestamp.isoformat(),
        "sender": dict(UserSummarySerializer(message.sender).data),
    }


def build_typing_payload(user_id: int, chat_id: int) -> dict[str, Any]:
    return {"userId": user_id, "chatId": chat_id}
