from django.contrib import admin

from agent_marketplace.chat import models


@admin.register(models.ChatSession)
class ChatSessionAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "assigned_agent", "subject", "status", "last_activity"]
    search_fields = ["subject", "user__username", "assigned_agent__username"]
    list_filter = ["status", "last_activity"]
    raw_id_fields = ["user", "assigned_agent", "last_message"]


@admin.register(models.ChatMessage)
class ChatMessageAdmin(admin.ModelAdmin):
    list_display = ["id", "chat_session", "sender", "message_type", "timestamp"]
    search_fields = ["content", "sender__username"]
    list_filter = ["message_type", "timestamp"]
    raw_id_fields = ["chat_session", "sender"]

    def has_change_permission(self, request, obj=None):
        # Messages are immutable
        return False
