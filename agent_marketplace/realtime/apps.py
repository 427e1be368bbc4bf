from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class RealtimeConfig(AppConfig):
    name = "agent_marketplace.realtime"
    verbose_name = _("Realtime")

    def ready(self):
        # Builds the chat relay and attaches its handlers to the server
        import agent_marketplace.realtime.socketio  # noqa: F401, PLC0415
