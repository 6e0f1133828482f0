from django.contrib import admin
from django.utils import timezone
from django.utils.html import format_html
from .models import StampBalance, Coupon, ScanToken


@admin.register(StampBalance)
class StampBalanceAdmin(admin.ModelAdmin):
    """Read-only view of stamp cards; counts change only through scans."""

    list_display = ['user', 'merchant_name', 'count', 'has_pending_gift', 'updated_at']
    list_filter = ['merchant_name', 'has_pending_gift']
    search_fields = ['user__email', 'user__display_name', 'merchant_name']
    readonly_fields = ['user', 'merchant_name', 'count', 'has_pending_gift', 'updated_at']
    ordering = ['merchant_name', '-updated_at']

    def has_add_permission(self, request):
        return False

    def get_queryset(self, request):
        """Optimize query with select_related."""
        return super().get_queryset(request).select_related('user')


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'merchant_name', 'created_at', 'expires_at', 'expiry_badge']
    list_filter = ['merchant_name', 'created_at']
    search_fields = ['user__email', 'merchant_name']
    readonly_fields = ['id', 'user', 'merchant_name', 'created_at', 'expires_at']
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        return False

    def expiry_badge(self, obj):
        """Display expiry status as colored badge."""
        if obj.is_expired(timezone.now()):
            bg, fg, label = '#B85C5C', 'white', 'Expired'
        else:
            bg, fg, label = '#6B8E5E', 'white', 'Valid'
        return format_html(
            '<span style="background: {}; color: {}; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">{}</span>',
            bg, fg, label
        )
    expiry_badge.short_description = 'Status'

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('user')


@admin.register(ScanToken)
class ScanTokenAdmin(admin.ModelAdmin):
    list_display = ['user', 'token', 'merchant_name', 'used_at']
    list_filter = ['merchant_name']
    search_fields = ['user__email', 'token']
    readonly_fields = ['user', 'token', 'merchant_name', 'used_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
