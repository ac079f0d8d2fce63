"""Role gate consumed by the transport layer.

The services in `academics` and `exams` never look at roles themselves: views
declare one of the permission classes below and DRF rejects the request with
403 before any service runs.
"""
from rest_framework import permissions

from .models import Role


def require_role(actor, *roles) -> bool:
    """Return True if `actor` is an active, authenticated user holding any of `roles`."""
    if actor is None or not getattr(actor, 'is_authenticated', False):
        return False
    if not getattr(actor, 'is_active', True):
        return False
    has_role = getattr(actor, 'has_role', None)
    if has_role is None:
        return False
    return has_role(*roles)


class RolePermission(permissions.BasePermission):
    allowed_roles: tuple = ()
    message = 'Access denied for your role.'

    def has_permission(self, request, view):
        return require_role(request.user, *self.allowed_roles)


class IsAdmin(RolePermission):
    allowed_roles = (Role.ADMIN,)
    message = 'Admin access required.'


class IsAdminOrTeacher(RolePermission):
    allowed_roles = (Role.ADMIN, Role.TEACHER)
    message = 'Admin or teacher access required.'


class IsStudent(RolePermission):
    allowed_roles = (Role.STUDENT,)
    message = 'Student access required.'
