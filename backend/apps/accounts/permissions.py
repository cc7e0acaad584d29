# FILE: /backend/apps/accounts/permissions.py
from rest_framework import permissions
from .models import User


def _role(request):
    user = request.user
    if not (user and getattr(user, 'is_authenticated', False)):
        return None
    return getattr(user, 'role', None)


# ----------------------------------------------------------------------
# Role‑based permissions
# ----------------------------------------------------------------------
class IsAdmin(permissions.BasePermission):
    """
    Permission check for Admin users.
    """

    def has_permission(self, request, view):
        return _role(request) == User.Role.ADMIN


class IsAgent(permissions.BasePermission):
    """
    Permission check for referring agents (Jyotishi).
    """

    def has_permission(self, request, view):
        return _role(request) == User.Role.JYOTISHI


class IsAgentOrAdmin(permissions.BasePermission):
    """
    Agents and admins; everybody else is refused.
    """

    def has_permission(self, request, view):
        return _role(request) in (User.Role.ADMIN, User.Role.JYOTISHI)


class IsAdminOrReadOnly(permissions.BasePermission):
    """
    Allows read‑only access to everyone, write access only to admins.
    """

    def has_permission(self, request, view):
        # Read permissions are allowed to any request
        if request.method in permissions.SAFE_METHODS:
            return True

        return _role(request) == User.Role.ADMIN


# ----------------------------------------------------------------------
# Object‑level permissions
# ----------------------------------------------------------------------
class IsOwnerOrAdmin(permissions.BasePermission):
    """
    Object‑level permission: only owners or admins may access.
    """

    def has_object_permission(self, request, view, obj):
        role = _role(request)
        if role is None:
            return False

        if role == User.Role.ADMIN:
            return True

        # Object owner checks – tries common field names
        for attr in ['user', 'agent', 'created_by_agent']:
            if hasattr(obj, attr) and getattr(obj, attr) == request.user:
                return True

        return False
