"""User authentication service."""

from django.db import transaction
from django.contrib.auth import get_user_model
from django.utils import timezone

from .exceptions import AuthError

User = get_user_model()


@transaction.atomic
def authenticate_user(*, email: str, password: str) -> User:
    """
    Authenticate user with email and password.

    Uses select_for_update() to prevent race conditions when updating last_login.

    Args:
        email: User's email
        password: User's password

    Returns:
        Authenticated User instance (callers check ``email_verified``)

    Raises:
        AuthError: ``user-not-found``, ``wrong-password`` or ``user-disabled``
    """
    try:
        user = (
            User.objects
            .select_for_update()
            .get(email__iexact=email)
        )
    except User.DoesNotExist:
        raise AuthError(AuthError.USER_NOT_FOUND, "No user with this email")

    if not user.check_password(password):
        raise AuthError(AuthError.WRONG_PASSWORD, "Wrong password")

    if not user.is_active:
        raise AuthError(AuthError.USER_DISABLED, "Account is disabled")

    user.last_login = timezone.now()
    user.save(update_fields=['last_login'])

    return user
