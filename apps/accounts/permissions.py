from rest_framework import permissions


class IsSuperAdmin(permissions.BasePermission):
    """
    Permission: User must be a superadmin.
    """

    message = 'Only superadmins can manage cafe admins.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_superadmin)
