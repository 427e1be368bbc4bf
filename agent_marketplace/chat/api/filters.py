import django_filters

from agent_marketplace.chat.models import ChatSession


class ChatSessionFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    assigned = django_filters.BooleanFilter(
        field_name="assigned_agent",
        lookup_expr="isnull",
        exclude=True,
    )

    class Meta:
        model = ChatSession
        fields = ["status", "assigned"]
