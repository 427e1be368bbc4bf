from rest_framework.permissions import BasePermission

from agent_marketplace.users.models import User


def is_marketplace_admin(user) -> bool:
    if not (user and getattr(user, "is_authenticated", False)):
        return False
    if getattr(user, "is_staff", False):
        return True
    return getattr(user, "role", None) == User.Role.ADMIN


class IsMarketplaceAdmin(BasePermission):
    """Allow access only to staff or users with the ADMIN marketplace role."""

    def has_permission(self, request, view):
        return is_marketplace_admin(getattr(request, "user", None))
