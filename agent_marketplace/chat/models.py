from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from agent_marketplace.users.models import User


class ChatSession(models.Model):
    """A support conversation between a buyer and an optional responder."""

    class Status(models.TextChoices):
        OPEN = "OPEN", _("Open")
        PENDING = "PENDING", _("Pending")
        RESOLVED = "RESOLVED", _("Resolved")
        CLOSED = "CLOSED", _("Closed")

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_sessions",
    )
    assigned_agent = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_chat_sessions",
    )
    subject = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.OPEN,
    )
    last_activity = models.DateTimeField(default=timezone.now, db_index=True)
    last_message = models.ForeignKey(
        "chat.ChatMessage",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-last_activity", "-id"]

    def __str__(self):
        return f"ChatSession({self.pk}) {self.subject or '-'}"

    def is_participant(self, user_id: int | None) -> bool:
        if user_id is None:
            return False
        return user_id in (self.user_id, self.assigned_agent_id)

    def allows(self, user_id: int | None, role: str | None) -> bool:
        """Initiator, assigned responder, or any marketplace admin."""
        if role == User.Role.ADMIN:
            return True
        return self.is_participant(user_id)

    def other_party_id(self, sender_id: int) -> int | None:
        """The counterpart of ``sender_id`` in this conversation.

        Anyone other than the initiator (the responder, or an admin reading
        along) is answered to the initiator.
        """
        if sender_id == self.user_id:
            return self.assigned_agent_id
        return self.user_id


class ChatMessage(models.Model):
    """An immutable message inside a chat session."""

    class Type(models.TextChoices):
        TEXT = "text", _("Text")
        IMAGE = "image", _("Image")
        FILE = "file", _("File")

    chat_session = models.ForeignKey(
        ChatSession,
        on_delete=models.CASCADE,
        related_name="messages",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_messages",
    )
    content = models.TextField()
    message_type = models.CharField(
        max_length=10,
        choices=Type.choices,
        default=Type.TEXT,
    )
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        # id breaks timestamp ties in persisted-write order
        ordering = ["timestamp", "id"]

    def __str__(self):
        return f"ChatMessage({self.pk}) in {self.chat_session_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            msg = "Chat messages are immutable once created."
            raise ValueError(msg)
        super().save(*args, **kwargs)
