"""
Domain-specific exceptions for loyalty app.

Every member is an expected operator-facing condition: the scan is
rejected with ``default_message`` and the scanner re-arms. Unexpected
backend failures are not modelled here; they surface as system errors.
"""


class LoyaltyServiceError(Exception):
    """Base exception for all loyalty service errors."""

    reason = 'LoyaltyError'
    default_message = 'The code could not be processed.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


# =============================================================================
# QR payload decoding
# =============================================================================

class QRPayloadError(LoyaltyServiceError):
    """Base exception for payloads that cannot be decoded."""
    pass


class InvalidFormatError(QRPayloadError):
    """Raised when scanned text is neither a JSON object nor ``type:userId``."""

    reason = 'InvalidFormat'
    default_message = 'Invalid QR code format.'


class MissingMerchantError(QRPayloadError):
    """Raised when a payload carries no cafe and none can be inferred."""

    reason = 'MissingMerchant'
    default_message = 'The QR code does not name a cafe.'


class MissingTimestampError(QRPayloadError):
    """Raised when a stamp payload carries no usable timestamp."""

    reason = 'MissingTimestamp'
    default_message = 'The QR code has no timestamp and cannot be used for a stamp.'


class UnknownQRTypeError(QRPayloadError):
    """Raised when the payload is well formed but of no known kind."""

    reason = 'UnknownQRType'
    default_message = 'Unknown QR code type.'


# =============================================================================
# Stamps & coupons
# =============================================================================

class AlreadyUsedError(LoyaltyServiceError):
    """Raised when a stamp QR code has been scanned before."""

    reason = 'AlreadyUsed'
    default_message = 'This QR code has already been used.'


class CouponNotFoundError(LoyaltyServiceError):
    """Raised when the coupon (or its owner) does not exist."""

    reason = 'NotFound'
    default_message = 'Coupon not found or already used.'


class CustomerNotFoundError(LoyaltyServiceError):
    """Raised when the QR code names an unknown customer."""

    reason = 'NotFound'
    default_message = 'Customer not found.'


class MerchantMismatchError(LoyaltyServiceError):
    """Raised when a coupon or code belongs to another cafe."""

    reason = 'MerchantMismatch'
    default_message = 'This coupon belongs to another cafe.'


class CouponExpiredError(LoyaltyServiceError):
    """Raised when an expired coupon is presented and expiry is enforced."""

    reason = 'Expired'
    default_message = 'This coupon has expired.'
