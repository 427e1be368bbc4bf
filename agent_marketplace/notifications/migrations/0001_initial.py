import django.db.models.deletion
from django.conf import settings
from django.db import migrations
from django.db import models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField()),
                (
                    "notification_type",
                    models.CharField(
                        choices=[
                            ("ORDER_COMPLETED", "Order Completed"),
                            ("ORDER_CONFIRMED", "Order Confirmed"),
                            ("ORDER_CANCELLED", "Order Cancelled"),
                            ("PAYMENT_RECEIVED", "Payment Received"),
                            ("PAYOUT_PROCESSED", "Payout Processed"),
                            ("AGENT_APPROVED", "Agent Approved"),
                            ("AGENT_REJECTED", "Agent Rejected"),
                            ("AGENT_FEATURED", "Agent Featured"),
                            ("REVIEW_RECEIVED", "Review Received"),
                            ("SYSTEM_ALERT", "System Alert"),
                            ("SECURITY_ALERT", "Security Alert"),
                            ("PROMOTION", "Promotion"),
                            ("BONUS", "Bonus"),
                            ("ADMIN_MESSAGE", "Admin Message"),
                            ("CHAT_MESSAGE", "Chat Message"),
                        ],
                        default="SYSTEM_ALERT",
                        max_length=50,
                    ),
                ),
                ("data", models.JSONField(blank=True, null=True)),
                ("is_read", models.BooleanField(default=False)),
                ("read_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "recipient",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
