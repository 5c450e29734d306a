from rest_framework.permissions import BasePermission


class IsAdminRole(BasePermission):
    message = "Access denied. Admin privileges required."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, "is_admin", False))


class IsActiveVoter(BasePermission):
    message = "Your account is not active. Please contact support."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, "can_vote", False))


class IsOwnerOrAdmin(BasePermission):
    """Object-level check for records carrying a ``user`` foreign key."""

    def has_object_permission(self, request, view, obj):
        user = request.user
        if getattr(user, "is_admin", False):
            return True
        return getattr(obj, "user_id", None) == user.id
