from rest_framework import permissions


class IsScanOperator(permissions.BasePermission):
    """
    Permission: User must be a cafe admin with a cafe, or a superadmin.
    """

    message = 'Only cafe admins can scan loyalty codes.'

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if user.is_superadmin:
            return True
        return user.is_cafe_admin and bool(user.merchant_name)
