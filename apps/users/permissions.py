from rest_framework import permissions

from apps.users.models import User


def is_admin_user(user) -> bool:
    """Superusers, staff and ADMIN-role accounts all count as admins."""
    if not user or not getattr(user, "is_authenticated", False):
        return False
    return user.is_superuser or user.is_staff or user.role == User.Role.ADMIN


class IsInstructorOrAdmin(permissions.BasePermission):
    """Restricts an endpoint to instructors and admins."""

    message = "Only instructors can access this resource"

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return is_admin_user(user) or user.role == User.Role.INSTRUCTOR
