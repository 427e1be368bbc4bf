from __future__ import annotations

import logging

from django.db.models import Q
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from agent_marketplace.chat.models import ChatSession
from agent_marketplace.notifications.services import notify_admins
from agent_marketplace.realtime.socketio import emit_event_to_chat
from agent_marketplace.realtime.socketio import revoke_chat_access
from agent_marketplace.users.api.permissions import IsMarketplaceAdmin
from agent_marketplace.users.api.permissions import is_marketplace_admin

from .filters import ChatSessionFilter
from .serializers import ChatAssignSerializer
from .serializers import ChatMessageSerializer
from .serializers import ChatSessionCreateSerializer
from .serializers import ChatSessionSerializer

logger = logging.getLogger(__name__)


def _publish_session_update(session: ChatSession) -> None:
    try:
        emit_event_to_chat(
            session.pk,
            "chat_updated",
            {
                "chatId": session.pk,
                "status": session.status,
                "assignedAgentId": session.assigned_agent_id,
            },
        )
    except Exception:
        logger.exception("Realtime push failed for chat %s", session.pk)


def _revoke_live_access(user_id: int, session: ChatSession) -> None:
    try:
        revoke_chat_access(user_id, session.pk)
    except Exception:
        logger.exception("Could not drop user %s from chat %s", user_id, session.pk)


@extend_schema_view(
    list=extend_schema(tags=["Chat"]),
    retrieve=extend_schema(tags=["Chat"]),
    create=extend_schema(tags=["Chat"]),
)
class ChatSessionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    GenericViewSet,
):
    """Support chat sessions.

    - list/retrieve: sessions the user started or is assigned to (admins: all)
    - create: start a session as the initiator; admins are alerted
    - messages: history in persisted order
    - assign (admin) / close (participants or admin)
    """

    permission_classes = [IsAuthenticated]
    serializer_class = ChatSessionSerializer
    filterset_class = ChatSessionFilter

    def get_queryset(self):
        user = self.request.user
        qs = ChatSession.objects.select_related(
            "user",
            "assigned_agent",
            "last_message__sender",
        )
        if is_marketplace_admin(user):
            return qs
        return qs.filter(Q(user=user) | Q(assigned_agent=user))

    def get_permissions(self):
        if self.action == "assign":
            return [IsAuthenticated(), IsMarketplaceAdmin()]
        return [p() for p in self.permission_classes]

    def create(self, request, *args, **kwargs):
        serializer = ChatSessionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        session = serializer.save(user=request.user)
        if session.assigned_agent_id is None:
            notify_admins(
                "New support chat",
                f"{request.user.display_name} opened a chat: "
                f"{session.subject or 'No subject'}",
                data={"chatId": session.pk},
            )
        out = ChatSessionSerializer(session, context={"request": request}).data
        return Response(out, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Chat"], responses=ChatMessageSerializer(many=True))
    @action(detail=True, methods=["get"])
    def messages(self, request, pk=None):
        session = self.get_object()
        qs = session.messages.select_related("sender").order_by("timestamp", "id")
        page = self.paginate_queryset(qs)
        if page is not None:
            serializer = ChatMessageSerializer(page, many=True)
            return self.get_paginated_response(serializer.data)
        return Response(ChatMessageSerializer(qs, many=True).data)

    @extend_schema(tags=["Chat"], request=ChatAssignSerializer)
    @action(detail=True, methods=["post"])
    def assign(self, request, pk=None):
        session = self.get_object()
        serializer = ChatAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        previous_agent_id = session.assigned_agent_id
        session.assigned_agent = serializer.validated_data["agent_id"]
        if session.status == ChatSession.Status.OPEN:
            session.status = ChatSession.Status.PENDING
        session.save(update_fields=["assigned_agent", "status"])
        if previous_agent_id not in (None, session.assigned_agent_id):
            _revoke_live_access(previous_agent_id, session)
        _publish_session_update(session)
        return Response(ChatSessionSerializer(session).data)

    @extend_schema(tags=["Chat"], request=None)
    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        # Queryset scoping already limits this to participants and admins
        session = self.get_object()
        if session.status != ChatSession.Status.CLOSED:
            session.status = ChatSession.Status.CLOSED
            session.save(update_fields=["status"])
            _publish_session_update(session)
        return Response(ChatSessionSerializer(session).data)
