"""
Redemption orchestrator.

Turns one scanned code into exactly one terminal outcome:

- ``accepted``: a stamp was added or a coupon redeemed
- ``rejected``: an expected condition (bad code, replay, wrong cafe, ...)
- ``system_error``: the backend failed; logged with traceback

Collaborators are injected so the orchestrator can run against fakes.
The defaults are the ORM-backed services of this app.
"""

from dataclasses import dataclass, asdict
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from loguru import logger

from .coupon_store import redeem_coupon, redeem_oldest_coupon
from .exceptions import (
    CustomerNotFoundError,
    LoyaltyServiceError,
    MerchantMismatchError,
    MissingMerchantError,
    MissingTimestampError,
)
from .qr_payload import CouponRedemption, decode_payload
from .replay_guard import check_and_mark
from .stamp_ledger import GIFT_THRESHOLD, add_stamp

User = get_user_model()


class ScanStatus:
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    SYSTEM_ERROR = 'system_error'


@dataclass
class ScanOutcome:
    status: str
    message: str
    reason: Optional[str] = None
    new_count: Optional[int] = None
    gift_issued: bool = False
    customer_name: Optional[str] = None
    rearm_after_seconds: int = 2

    @property
    def accepted(self):
        return self.status == ScanStatus.ACCEPTED

    def to_dict(self):
        return asdict(self)


def get_customer(user_id) -> User:
    """
    Resolve the customer named in a QR code.

    Raises:
        CustomerNotFoundError: If no active user has this id
    """
    try:
        return User.objects.get(id=user_id, is_active=True)
    except (User.DoesNotExist, ValidationError, ValueError):
        raise CustomerNotFoundError()


class RedemptionOrchestrator:
    """
    Process scanned codes for one cafe operator.

    Example::

        outcome = RedemptionOrchestrator().process(
            raw_text,
            operator_merchant=request.user.merchant_name,
        )
    """

    def __init__(
        self,
        *,
        decoder=decode_payload,
        replay_guard=check_and_mark,
        stamp_ledger=add_stamp,
        coupon_redeemer=redeem_coupon,
        legacy_coupon_redeemer=redeem_oldest_coupon,
        user_lookup=get_customer,
        allow_legacy_stamps=None,
        rearm_after_seconds=None,
    ):
        self.decoder = decoder
        self.replay_guard = replay_guard
        self.stamp_ledger = stamp_ledger
        self.coupon_redeemer = coupon_redeemer
        self.legacy_coupon_redeemer = legacy_coupon_redeemer
        self.user_lookup = user_lookup
        if allow_legacy_stamps is None:
            allow_legacy_stamps = settings.LOYALTY_ALLOW_LEGACY_STAMPS
        self.allow_legacy_stamps = allow_legacy_stamps
        if rearm_after_seconds is None:
            rearm_after_seconds = settings.LOYALTY_SCAN_COOLDOWN_SECONDS
        self.rearm_after_seconds = rearm_after_seconds

    def process(self, raw_text, *, operator_merchant=None) -> ScanOutcome:
        """
        Decode and apply one scanned code.

        Args:
            raw_text: Text decoded from the QR code
            operator_merchant: Cafe of the scanning admin; None for superadmins

        Returns:
            ScanOutcome; this method does not raise
        """
        try:
            request = self.decoder(raw_text)
            merchant_name = self._resolve_merchant(request, operator_merchant)
            if isinstance(request, CouponRedemption):
                return self._redeem_coupon(request, merchant_name)
            return self._grant_stamp(request, merchant_name)
        except LoyaltyServiceError as e:
            logger.info("Scan rejected", reason=e.reason, detail=e.message)
            return self._outcome(ScanStatus.REJECTED, e.message, reason=e.reason)
        except Exception as e:
            logger.exception("Scan failed", error=type(e).__name__, merchant=operator_merchant)
            return self._outcome(
                ScanStatus.SYSTEM_ERROR,
                'The scan could not be processed. Please try again.',
                reason='SystemError',
            )

    def _resolve_merchant(self, request, operator_merchant):
        merchant_name = request.merchant_name
        if merchant_name and operator_merchant and merchant_name != operator_merchant:
            raise MerchantMismatchError('This code was issued for another cafe.')
        merchant_name = merchant_name or operator_merchant
        if not merchant_name:
            raise MissingMerchantError()
        return merchant_name

    def _redeem_coupon(self, request, merchant_name):
        if request.coupon_id is None:
            customer_name = self.legacy_coupon_redeemer(
                user_id=request.user_id,
                merchant_name=merchant_name,
            )
        else:
            customer_name = self.coupon_redeemer(
                user_id=request.user_id,
                merchant_name=merchant_name,
                coupon_id=request.coupon_id,
            )
        return self._outcome(
            ScanStatus.ACCEPTED,
            f'Gift coupon redeemed for {customer_name}.',
            customer_name=customer_name,
        )

    def _grant_stamp(self, request, merchant_name):
        if request.token is None:
            if not self.allow_legacy_stamps:
                raise MissingTimestampError()
            logger.warning(
                "Accepting legacy stamp code without replay protection",
                user_id=request.user_id,
                merchant=merchant_name,
            )

        # Token and stamp commit together; a failed stamp frees the code
        with transaction.atomic():
            customer = self.user_lookup(request.user_id)
            if request.token is not None:
                self.replay_guard(user=customer, merchant_name=merchant_name, token=request.token)
            result = self.stamp_ledger(user=customer, merchant_name=merchant_name)

        customer_name = customer.get_display_name()
        if result.gift_issued:
            message = f'Stamp card complete! {customer_name} received a gift coupon.'
        else:
            message = f'Stamp added for {customer_name}: {result.new_count}/{GIFT_THRESHOLD}.'
        return self._outcome(
            ScanStatus.ACCEPTED,
            message,
            new_count=result.new_count,
            gift_issued=result.gift_issued,
            customer_name=customer_name,
        )

    def _outcome(self, status, message, **extra):
        return ScanOutcome(
            status=status,
            message=message,
            rearm_after_seconds=self.rearm_after_seconds,
            **extra,
        )
