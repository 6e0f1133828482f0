"""
Stamp ledger.

One balance row per (user, cafe). Adding a stamp is a single transaction
holding a row lock on the balance, so concurrent scans for the same card
serialize: N grants always leave ``count == N % GIFT_THRESHOLD`` and issue
exactly ``N // GIFT_THRESHOLD`` coupons.
"""

from dataclasses import dataclass
from typing import Optional

from django.db import transaction, IntegrityError
from loguru import logger

from apps.loyalty.models import Coupon, StampBalance

from .coupon_store import issue_coupon

GIFT_THRESHOLD = 5


@dataclass(frozen=True)
class StampResult:
    new_count: int
    gift_issued: bool
    coupon: Optional[Coupon] = None


def _lock_balance(user, merchant_name: str) -> StampBalance:
    """Return the locked balance row, creating it at zero if absent."""
    try:
        return (
            StampBalance.objects
            .select_for_update()
            .get(user=user, merchant_name=merchant_name)
        )
    except StampBalance.DoesNotExist:
        pass

    try:
        with transaction.atomic():
            return StampBalance.objects.create(user=user, merchant_name=merchant_name)
    except IntegrityError:
        # Another scan created the row first; wait for its lock
        return (
            StampBalance.objects
            .select_for_update()
            .get(user=user, merchant_name=merchant_name)
        )


@transaction.atomic
def add_stamp(*, user, merchant_name: str) -> StampResult:
    """
    Add one stamp to the user's card at a cafe.

    The fifth stamp writes ``count=5`` with the gift flag, issues a coupon
    and resets the card to zero, all inside this transaction.

    Args:
        user: Customer receiving the stamp
        merchant_name: Cafe granting the stamp

    Returns:
        StampResult with the count after this stamp and the issued coupon, if any
    """
    balance = _lock_balance(user, merchant_name)
    new_count = balance.count + 1

    if new_count < GIFT_THRESHOLD:
        balance.count = new_count
        balance.has_pending_gift = False
        balance.save(update_fields=['count', 'has_pending_gift', 'updated_at'])
        logger.info(
            "Stamp added",
            user_id=str(user.pk),
            merchant=merchant_name,
            count=new_count,
        )
        return StampResult(new_count=new_count, gift_issued=False)

    balance.count = GIFT_THRESHOLD
    balance.has_pending_gift = True
    balance.save(update_fields=['count', 'has_pending_gift', 'updated_at'])

    coupon = issue_coupon(user=user, merchant_name=merchant_name)

    balance.count = 0
    balance.save(update_fields=['count', 'updated_at'])

    logger.info(
        "Stamp card completed",
        user_id=str(user.pk),
        merchant=merchant_name,
        coupon_id=str(coupon.id),
    )
    return StampResult(new_count=0, gift_issued=True, coupon=coupon)


def get_balances(*, user):
    """Return the user's stamp cards, one per cafe."""
    return StampBalance.objects.filter(user=user).order_by('merchant_name')


def get_balance(*, user, merchant_name: str) -> StampBalance:
    """Return the user's card at one cafe; an unsaved zero card if none exists."""
    balance = StampBalance.objects.filter(user=user, merchant_name=merchant_name).first()
    return balance or StampBalance(user=user, merchant_name=merchant_name)
