# users/permissions.py
import logging

from rest_framework import permissions

logger = logging.getLogger(__name__)


def is_platform_admin(user):
    """
    True when the local role column, the Django staff flag, or the identity
    provider's public metadata marks the user as an admin.
    """
    if not user or not user.is_authenticated:
        return False

    local_admin = user.is_staff or user.role == user.Role.ADMIN
    provider_admin = user.provider_role == user.Role.ADMIN

    if provider_admin != (user.role == user.Role.ADMIN) and user.provider_role is not None:
        logger.warning(
            "Role drift for %s: local=%s provider=%s", user.email, user.role, user.provider_role
        )
    return local_admin or provider_admin


def is_content_manager(user):
    """Admins and Instructors may manage mock tests, bundles and courses."""
    if is_platform_admin(user):
        return True
    return bool(user and user.is_authenticated and user.role == user.Role.INSTRUCTOR)


class IsPlatformAdmin(permissions.BasePermission):
    """Admins only. Strictly blocks Students and Instructors."""

    def has_permission(self, request, view):
        return is_platform_admin(request.user)


class IsAdminOrInstructor(permissions.BasePermission):
    """
    Allows access to Admins and Instructors.
    Instructors can manage content but cannot delete it.
    """

    def has_permission(self, request, view):
        # 1. User must be logged in
        if not request.user or not request.user.is_authenticated:
            return False

        if is_platform_admin(request.user):
            return True

        # 2. Instructors: everything except DELETE
        if request.user.role == request.user.Role.INSTRUCTOR:
            return request.method != 'DELETE'
        return False
