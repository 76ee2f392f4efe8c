from rest_framework import permissions


class IsManagerOrAdmin(permissions.BasePermission):
    """Only managers and admins may assign or schedule tasks."""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role in ['SUPER_ADMIN', 'ADMIN', 'MANAGER']
