# ==========================================
# apps/accounts/admin.py
# ==========================================

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.html import format_html
from .models import User, UserRole


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin interface for User model.

    Lists customers, cafe admins and superadmins with their cafe
    affiliation and verification state.
    """

    list_display = [
        'email',
        'display_name',
        'role_badge',
        'merchant_name',
        'email_verified',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'role',
        'is_active',
        'email_verified',
        'created_at',
    ]

    search_fields = [
        'email',
        'display_name',
        'merchant_name',
    ]

    ordering = ['-created_at']
    date_hierarchy = 'created_at'

    # Remove username field references from BaseUserAdmin
    fieldsets = (
        ('Basic Information', {
            'fields': ('email', 'name', 'surname', 'display_name', 'password')
        }),
        ('Loyalty Role', {
            'fields': ('role', 'merchant_name'),
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
        }),
        ('Verification', {
            'fields': ('email_verified', 'verification_token'),
            'classes': ('collapse',),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'last_login'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        ('Create User', {
            'classes': ('wide',),
            'fields': ('email', 'name', 'surname', 'password1', 'password2'),
        }),
        ('Loyalty Role', {
            'fields': ('role', 'merchant_name'),
        }),
    )

    readonly_fields = [
        'created_at',
        'last_login',
    ]

    filter_horizontal = ['groups', 'user_permissions']

    def role_badge(self, obj):
        """Display role as colored badge."""
        colors = {
            UserRole.USER: ('#ccc', '#666'),
            UserRole.ADMIN: ('#A47449', 'white'),
            UserRole.SUPERADMIN: ('#2C1810', 'white'),
        }
        bg, fg = colors.get(obj.role, ('#ccc', '#666'))
        return format_html(
            '<span style="background: {}; color: {}; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">{}</span>',
            bg, fg, obj.get_role_display()
        )
    role_badge.short_description = 'Role'
    role_badge.admin_order_field = 'role'
