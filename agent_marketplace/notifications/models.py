from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class Notification(models.Model):
    class Type(models.TextChoices):
        ORDER_COMPLETED = "ORDER_COMPLETED", _("Order Completed")
        ORDER_CONFIRMED = "ORDER_CONFIRMED", _("Order Confirmed")
        ORDER_CANCELLED = "ORDER_CANCELLED", _("Order Cancelled")
        PAYMENT_RECEIVED = "PAYMENT_RECEIVED", _("Payment Received")
        PAYOUT_PROCESSED = "PAYOUT_PROCESSED", _("Payout Processed")
        AGENT_APPROVED = "AGENT_APPROVED", _("Agent Approved")
        AGENT_REJECTED = "AGENT_REJECTED", _("Agent Rejected")
        AGENT_FEATURED = "AGENT_FEATURED", _("Agent Featured")
        REVIEW_RECEIVED = "REVIEW_RECEIVED", _("Review Received")
        SYSTEM_ALERT = "SYSTEM_ALERT", _("System Alert")
        SECURITY_ALERT = "SECURITY_ALERT", _("Security Alert")
        PROMOTION = "PROMOTION", _("Promotion")
        BONUS = "BONUS", _("Bonus")
        ADMIN_MESSAGE = "ADMIN_MESSAGE", _("Admin Message")
        CHAT_MESSAGE = "CHAT_MESSAGE", _("Chat Message")

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications"
    )
    title = models.CharField(max_length=255)
    message = models.TextField()
    notification_type = models.CharField(
        max_length=50, choices=Type.choices, default=Type.SYSTEM_ALERT
    )
    # Opaque payload for the client, e.g. {"chatId": 1, "messageId": 2}
    data = models.JSONField(null=True, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.title} - {self.recipient}"

    def set_read(self, read: bool = True) -> None:  # noqa: FBT001, FBT002
        self.is_read = read
        self.read_at = timezone.now() if read else None
        self.save(update_fields=["is_read", "read_at"])
