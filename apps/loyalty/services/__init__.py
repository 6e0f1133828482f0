"""
Loyalty app services layer.

Stamps, coupons and QR redemption. All state-changing operations run in
transactions; concurrency is resolved by row locks and unique constraints.
"""

from .exceptions import (
    LoyaltyServiceError,
    QRPayloadError,
    InvalidFormatError,
    MissingMerchantError,
    MissingTimestampError,
    UnknownQRTypeError,
    AlreadyUsedError,
    CouponNotFoundError,
    CustomerNotFoundError,
    MerchantMismatchError,
    CouponExpiredError,
)

from .qr_payload import (
    StampGrant,
    CouponRedemption,
    decode_payload,
    build_stamp_payload,
    build_coupon_payload,
)

from .replay_guard import check_and_mark

from .coupon_store import (
    issue_coupon,
    redeem_coupon,
    redeem_oldest_coupon,
    get_coupon,
    list_coupons,
    purge_expired_coupons,
)

from .stamp_ledger import (
    GIFT_THRESHOLD,
    StampResult,
    add_stamp,
    get_balance,
    get_balances,
)

from .redemption import (
    RedemptionOrchestrator,
    ScanOutcome,
    ScanStatus,
)

from .scan_gate import ScanGate


__all__ = [
    # Exceptions
    'LoyaltyServiceError',
    'QRPayloadError',
    'InvalidFormatError',
    'MissingMerchantError',
    'MissingTimestampError',
    'UnknownQRTypeError',
    'AlreadyUsedError',
    'CouponNotFoundError',
    'CustomerNotFoundError',
    'MerchantMismatchError',
    'CouponExpiredError',

    # QR payloads
    'StampGrant',
    'CouponRedemption',
    'decode_payload',
    'build_stamp_payload',
    'build_coupon_payload',

    # Replay guard
    'check_and_mark',

    # Coupon store
    'issue_coupon',
    'redeem_coupon',
    'redeem_oldest_coupon',
    'get_coupon',
    'list_coupons',
    'purge_expired_coupons',

    # Stamp ledger
    'GIFT_THRESHOLD',
    'StampResult',
    'add_stamp',
    'get_balance',
    'get_balances',

    # Orchestration
    'RedemptionOrchestrator',
    'ScanOutcome',
    'ScanStatus',
    'ScanGate',
]
