"""Email verification service."""

import secrets
from uuid import UUID

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.db import transaction
from loguru import logger

from .exceptions import InvalidTokenError, UserNotFoundError

User = get_user_model()


def issue_verification_token(user) -> str:
    """Store a fresh verification token on the user and return it."""
    user.verification_token = secrets.token_urlsafe(32)
    user.save(update_fields=['verification_token'])
    return user.verification_token


def send_verification_email(user):
    send_mail(
        subject='Verify your email address',
        message=(
            f"Hello {user.get_display_name()},\n\n"
            f"Your verification code is: {user.verification_token}\n"
        ),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[user.email],
    )
    logger.info("Sent verification email", user_id=str(user.id))


@transaction.atomic
def verify_user_email(*, user_id: UUID, token: str) -> User:
    """
    Verify user's email with token.

    Args:
        user_id: User's ID
        token: Verification token

    Returns:
        User instance

    Raises:
        UserNotFoundError: If the user does not exist
        InvalidTokenError: If token is invalid
    """
    try:
        user = (
            User.objects
            .select_for_update()
            .get(id=user_id)
        )
    except User.DoesNotExist:
        raise UserNotFoundError(f"User with ID {user_id} not found")

    if not token or user.verification_token != token:
        raise InvalidTokenError("Invalid verification token")

    # Mark email as verified and clear token
    user.email_verified = True
    user.verification_token = None
    user.save(update_fields=['email_verified', 'verification_token'])

    return user


def check_email_verification(*, user_id: UUID) -> bool:
    """Re-read the user record and report whether the email is verified."""
    try:
        user = User.objects.only('email_verified').get(id=user_id)
    except User.DoesNotExist:
        raise UserNotFoundError(f"User with ID {user_id} not found")
    return user.email_verified


@transaction.atomic
def resend_verification_email(*, user_id: UUID) -> User:
    """
    Issue a new verification token and email it.

    Raises:
        UserNotFoundError: If the user does not exist
        InvalidTokenError: If the email is already verified
    """
    try:
        user = User.objects.select_for_update().get(id=user_id)
    except User.DoesNotExist:
        raise UserNotFoundError(f"User with ID {user_id} not found")

    if user.email_verified:
        raise InvalidTokenError("Email is already verified")

    issue_verification_token(user)
    transaction.on_commit(lambda: send_verification_email(user))
    return user
