import django_filters

from agent_marketplace.notifications.models import Notification


class NotificationFilter(django_filters.FilterSet):
    type = django_filters.ChoiceFilter(
        field_name="notification_type",
        choices=Notification.Type.choices,
    )
    unread_only = django_filters.BooleanFilter(method="filter_unread_only")

    class Meta:
        model = Notification
        fields = ["type", "unread_only"]

    def filter_unread_only(self, queryset, name, value):
        if value:
            return queryset.filter(is_read=False)
        return queryset
