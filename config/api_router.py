from django.conf import settings
from rest_framework.routers import DefaultRouter
from rest_framework.routers import SimpleRouter

from agent_marketplace.chat.api.views import ChatSessionViewSet
from agent_marketplace.notifications.api.views import NotificationViewSet
from agent_marketplace.users.api.views import UserViewSet

router = DefaultRouter() if settings.DEBUG else SimpleRouter()

router.register("users", UserViewSet)
router.register("chats", ChatSessionViewSet, basename="chats")
router.register("notifications", NotificationViewSet, basename="notifications")


app_name = "api"
urlpatterns = router.urls
