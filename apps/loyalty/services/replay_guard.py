"""
Replay guard for stamp QR codes.

A stamp code is static text and could be shown twice (a screenshot, say).
Each (user, normalized timestamp) pair may be consumed once; the unique
constraint on ``ScanToken`` is the final arbiter under concurrency.
"""

from django.db import transaction, IntegrityError
from django.utils import timezone
from loguru import logger

from apps.loyalty.models import ScanToken

from .exceptions import AlreadyUsedError


def check_and_mark(*, user, merchant_name: str, token: str, now=None) -> ScanToken:
    """
    Consume a stamp QR token.

    Args:
        user: Customer the code belongs to
        merchant_name: Cafe where the code is scanned
        token: Normalized timestamp from the payload
        now: Override for ``used_at``

    Returns:
        The created ScanToken

    Raises:
        AlreadyUsedError: If the token was consumed before
    """
    if ScanToken.objects.filter(user=user, token=token).exists():
        logger.info("Rejected replayed stamp code", user_id=str(user.pk), token=token)
        raise AlreadyUsedError()

    try:
        with transaction.atomic():
            return ScanToken.objects.create(
                user=user,
                token=token,
                merchant_name=merchant_name,
                used_at=now or timezone.now(),
            )
    except IntegrityError:
        # A concurrent scan of the same code won the insert
        logger.info("Rejected concurrently replayed stamp code", user_id=str(user.pk), token=token)
        raise AlreadyUsedError()
