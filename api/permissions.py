"""Custom permissions for REST API v1."""
from __future__ import annotations

from rest_framework.permissions import BasePermission, SAFE_METHODS

from accounts.models import Role


def _role(user) -> str | None:
    profile = getattr(user, "profile", None)
    return getattr(profile, "role", None)


def is_admin(user) -> bool:
    if not (user and user.is_authenticated):
        return False
    return bool(user.is_staff or _role(user) == Role.ADMIN)


def is_catalog_manager(user) -> bool:
    """Instructors and admins may edit courses, versions and chapters."""
    return is_admin(user) or bool(user and user.is_authenticated and _role(user) == Role.INSTRUCTOR)


def can_manage_course(user, course) -> bool:
    return is_admin(user) or (is_catalog_manager(user) and course.author_id == user.id)


class IsAuthenticatedOrReadOnly(BasePermission):
    def has_permission(self, request, view):  # noqa: D401
        return bool(request.method in SAFE_METHODS or (request.user and request.user.is_authenticated))


class IsCatalogManagerOrReadOnly(BasePermission):
    def has_permission(self, request, view):
        return bool(request.method in SAFE_METHODS or is_catalog_manager(request.user))


class IsAdminRole(BasePermission):
    def has_permission(self, request, view):
        return is_admin(request.user)
