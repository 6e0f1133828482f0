from django.conf import settings
from django.db import models
from django.utils import timezone
import uuid


class StampBalance(models.Model):
    """
    Stamp card of one user at one cafe.

    ``count`` stays in 0..4 between transactions; 5 only exists inside the
    transaction that converts it into a coupon.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='stamp_balances'
    )
    merchant_name = models.CharField(max_length=100)
    count = models.PositiveSmallIntegerField(default=0)
    has_pending_gift = models.BooleanField(default=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'stamp_balances'
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'merchant_name'],
                name='unique_stamp_balance_per_cafe'
            ),
            models.CheckConstraint(
                condition=models.Q(count__lte=5),
                name='stamp_count_at_most_5'
            ),
        ]
        ordering = ['merchant_name']

    def __str__(self):
        return f"{self.user} @ {self.merchant_name}: {self.count}"


class Coupon(models.Model):
    """
    Gift coupon issued after a full stamp card.

    A coupon is valid while the row exists; redemption deletes it.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='coupons'
    )
    merchant_name = models.CharField(max_length=100)
    created_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField()

    class Meta:
        db_table = 'coupons'
        indexes = [
            models.Index(fields=['user', 'merchant_name'], name='coupons_user_merchant_idx'),
            models.Index(fields=['expires_at'], name='coupons_expires_at_idx'),
        ]
        ordering = ['created_at']

    def __str__(self):
        return f"Coupon {self.id} for {self.user} @ {self.merchant_name}"

    def is_expired(self, now=None):
        return self.expires_at <= (now or timezone.now())


class ScanToken(models.Model):
    """Marks a stamp QR code (user + normalized timestamp) as consumed."""

    id = models.BigAutoField(primary_key=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='scan_tokens'
    )
    token = models.CharField(max_length=64)
    merchant_name = models.CharField(max_length=100)
    used_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'scan_tokens'
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'token'],
                name='unique_scan_token_per_user'
            ),
        ]
        ordering = ['-used_at']

    def __str__(self):
        return f"{self.user} / {self.token}"
