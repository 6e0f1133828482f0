"""
Coupon store.

Coupons are issued by the stamp ledger and redeemed by a QR scan at the
issuing cafe. Redemption deletes the row, so "used" and "absent" are the
same terminal state and a second redemption naturally reports NotFound.

Expiry is enforced at redemption when ``LOYALTY_ENFORCE_COUPON_EXPIRY`` is
on (the default). Expired coupons are kept until ``purge_expired_coupons``
removes them.
"""

from datetime import timedelta
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
from loguru import logger

from apps.loyalty.models import Coupon

from .exceptions import (
    CouponExpiredError,
    CouponNotFoundError,
    MerchantMismatchError,
)

User = get_user_model()


def coupon_lifetime() -> timedelta:
    return timedelta(days=settings.LOYALTY_COUPON_LIFETIME_DAYS)


def expiry_enforced() -> bool:
    return settings.LOYALTY_ENFORCE_COUPON_EXPIRY


def issue_coupon(*, user, merchant_name: str, now=None) -> Coupon:
    """Create a gift coupon valid for ``LOYALTY_COUPON_LIFETIME_DAYS``."""
    now = now or timezone.now()
    coupon = Coupon.objects.create(
        user=user,
        merchant_name=merchant_name,
        created_at=now,
        expires_at=now + coupon_lifetime(),
    )
    logger.info(
        "Issued coupon",
        coupon_id=str(coupon.id),
        user_id=str(user.pk),
        merchant=merchant_name,
    )
    return coupon


def _get_customer(user_id) -> User:
    try:
        return User.objects.get(id=user_id)
    except (User.DoesNotExist, ValidationError, ValueError):
        raise CouponNotFoundError("Customer not found.")


def _consume(coupon: Coupon, *, merchant_name: str, now) -> None:
    if coupon.merchant_name != merchant_name:
        raise MerchantMismatchError()

    if expiry_enforced() and coupon.is_expired(now):
        raise CouponExpiredError()

    coupon_id = coupon.id
    coupon.delete()
    logger.info("Redeemed coupon", coupon_id=str(coupon_id), merchant=merchant_name)


@transaction.atomic
def redeem_coupon(*, user_id, merchant_name: str, coupon_id, now=None) -> str:
    """
    Redeem a coupon once, at the cafe that issued it.

    Args:
        user_id: Owner named in the QR code
        merchant_name: Cafe performing the redemption
        coupon_id: Coupon named in the QR code
        now: Override for the expiry check

    Returns:
        The customer's display name, for operator confirmation

    Raises:
        CouponNotFoundError: Unknown customer, or no such coupon for them
        MerchantMismatchError: Coupon was issued by another cafe
        CouponExpiredError: Coupon expired and expiry is enforced
    """
    customer = _get_customer(user_id)

    try:
        coupon = (
            Coupon.objects
            .select_for_update()
            .get(id=coupon_id, user=customer)
        )
    except (Coupon.DoesNotExist, ValidationError, ValueError):
        raise CouponNotFoundError()

    _consume(coupon, merchant_name=merchant_name, now=now or timezone.now())
    return customer.get_display_name()


@transaction.atomic
def redeem_oldest_coupon(*, user_id, merchant_name: str, now=None) -> str:
    """
    Redeem the customer's oldest coupon at this cafe.

    Legacy gift codes name only the customer; the coupon is picked here.
    Expired coupons are skipped while expiry is enforced.

    Raises:
        CouponNotFoundError: Unknown customer or no redeemable coupon
    """
    now = now or timezone.now()
    customer = _get_customer(user_id)

    queryset = (
        Coupon.objects
        .select_for_update()
        .filter(user=customer, merchant_name=merchant_name)
        .order_by('created_at')
    )
    if expiry_enforced():
        queryset = queryset.filter(expires_at__gt=now)

    coupon = queryset.first()
    if coupon is None:
        raise CouponNotFoundError()

    _consume(coupon, merchant_name=merchant_name, now=now)
    return customer.get_display_name()


def get_coupon(*, user, coupon_id: UUID) -> Coupon:
    """
    Return one of the user's coupons.

    Raises:
        CouponNotFoundError: If the user has no such coupon
    """
    try:
        return Coupon.objects.get(id=coupon_id, user=user)
    except Coupon.DoesNotExist:
        raise CouponNotFoundError()


def list_coupons(*, user, merchant_name: Optional[str] = None, include_expired=False, now=None):
    """Return the user's coupons, oldest first."""
    queryset = Coupon.objects.filter(user=user)
    if merchant_name:
        queryset = queryset.filter(merchant_name=merchant_name)
    if not include_expired:
        queryset = queryset.filter(expires_at__gt=now or timezone.now())
    return queryset.order_by('created_at')


def purge_expired_coupons(*, now=None) -> int:
    """Delete coupons past their expiry date. Returns how many were removed."""
    deleted, _ = Coupon.objects.filter(expires_at__lte=now or timezone.now()).delete()
    if deleted:
        logger.info("Purged expired coupons", count=deleted)
    return deleted
