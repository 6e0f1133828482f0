"""
QR payload decoding and building.

Scanned text is tried against an ordered tuple of parser strategies. Each
strategy returns a field mapping or ``None``; the first mapping wins and is
classified into a typed request. Nothing here touches the database.

Accepted shapes::

    {"userId": "...", "cafeName": "...", "timestamp": "..."}   stamp grant
    {"userId": "...", "cafeName": "...", "couponId": "..."}    coupon redemption
    coffee:<userId>                                           legacy stamp grant
    gift:<userId>                                             legacy coupon redemption
"""

import json
import re
from dataclasses import dataclass
from typing import Optional

from django.utils import timezone

from .exceptions import (
    InvalidFormatError,
    MissingMerchantError,
    MissingTimestampError,
    UnknownQRTypeError,
)


COFFEE_KEYWORDS = frozenset({'coffee', 'kahve', 'stamp'})
GIFT_KEYWORDS = frozenset({'gift', 'hediye', 'coupon'})

MAX_TOKEN_LENGTH = 64
# Matches the merchant_name columns of the loyalty tables
MAX_MERCHANT_LENGTH = 100

_LEGACY_PATTERN = re.compile(r'^\s*([A-Za-z_-]+)\s*:\s*([^\s:]+)\s*$')
_NON_ALNUM = re.compile(r'[^0-9A-Za-z]')
_NON_LETTER = re.compile(r'[^a-z]')


@dataclass(frozen=True)
class StampGrant:
    """Request to add one stamp. ``token`` is None for legacy codes."""

    user_id: str
    merchant_name: Optional[str]
    token: Optional[str]
    legacy: bool = False


@dataclass(frozen=True)
class CouponRedemption:
    """Request to redeem a coupon. ``coupon_id`` is None for legacy codes."""

    user_id: str
    merchant_name: Optional[str]
    coupon_id: Optional[str]
    legacy: bool = False


# =============================================================================
# Parser strategies
# =============================================================================

def parse_json_payload(raw_text):
    """Structured payload: a JSON object."""
    try:
        data = json.loads(raw_text)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def parse_delimited_payload(raw_text):
    """Legacy payload: ``type:userId``."""
    match = _LEGACY_PATTERN.match(raw_text or '')
    if match is None:
        return None
    return {'type': match.group(1), 'userId': match.group(2)}


PARSER_STRATEGIES = (
    parse_json_payload,
    parse_delimited_payload,
)


# =============================================================================
# Classification
# =============================================================================

def normalize_timestamp(value):
    """Strip punctuation so the timestamp can serve as a replay-token key."""
    return _NON_ALNUM.sub('', str(value))


def _text(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _keyword(value):
    return _NON_LETTER.sub('', str(value).casefold())


def _token_from(timestamp):
    token = normalize_timestamp(timestamp)
    if not token:
        raise MissingTimestampError()
    if len(token) > MAX_TOKEN_LENGTH:
        raise InvalidFormatError('QR code timestamp is too long.')
    return token


def classify_payload(fields):
    """
    Turn a parsed field mapping into a StampGrant or CouponRedemption.

    Raises:
        MissingMerchantError: userId present but no cafe
        MissingTimestampError: cafe present but neither timestamp nor couponId
        UnknownQRTypeError: nothing recognisable
        InvalidFormatError: cafe name or timestamp too long to store
    """
    user_id = _text(fields.get('userId'))
    merchant_name = _text(fields.get('cafeName')) or _text(fields.get('merchantName'))
    coupon_id = _text(fields.get('couponId'))
    timestamp = _text(fields.get('timestamp'))
    qr_type = _text(fields.get('type'))

    if merchant_name and len(merchant_name) > MAX_MERCHANT_LENGTH:
        raise InvalidFormatError('QR code cafe name is too long.')

    if user_id and merchant_name and coupon_id:
        return CouponRedemption(user_id, merchant_name, coupon_id)

    if user_id and merchant_name and timestamp:
        return StampGrant(user_id, merchant_name, _token_from(timestamp))

    if user_id and qr_type:
        keyword = _keyword(qr_type)
        if keyword in COFFEE_KEYWORDS:
            token = _token_from(timestamp) if timestamp else None
            return StampGrant(user_id, merchant_name, token, legacy=True)
        if keyword in GIFT_KEYWORDS:
            return CouponRedemption(user_id, merchant_name, coupon_id, legacy=True)
        raise UnknownQRTypeError()

    if user_id and not merchant_name:
        raise MissingMerchantError()
    if user_id:
        raise MissingTimestampError()
    raise UnknownQRTypeError()


def decode_payload(raw_text):
    """
    Decode scanned text into a typed request.

    Raises:
        InvalidFormatError: No parser strategy accepts the text
        QRPayloadError: Any classification failure
    """
    for strategy in PARSER_STRATEGIES:
        fields = strategy(raw_text)
        if fields is not None:
            return classify_payload(fields)
    raise InvalidFormatError()


# =============================================================================
# Building (customer side)
# =============================================================================

def build_stamp_payload(*, user, merchant_name, now=None):
    """Payload a customer shows to collect a stamp at a cafe."""
    now = now or timezone.now()
    return json.dumps({
        'userId': str(user.id),
        'cafeName': merchant_name,
        'timestamp': now.isoformat(),
    })


def build_coupon_payload(coupon):
    """Payload a customer shows to redeem a coupon."""
    return json.dumps({
        'userId': str(coupon.user_id),
        'cafeName': coupon.merchant_name,
        'couponId': str(coupon.id),
    })
