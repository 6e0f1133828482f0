"""User registration service."""

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction, IntegrityError
from loguru import logger

from .email_verification import issue_verification_token, send_verification_email
from .exceptions import AuthError

User = get_user_model()


def register_user(
    *,
    email: str,
    password: str,
    name: str = "",
    surname: str = "",
    display_name: str = ""
) -> User:
    """
    Register a new customer account and send a verification email.

    The display name defaults to "name surname".

    Args:
        email: User's email address
        password: User's password (will be hashed)
        name: Given name
        surname: Family name
        display_name: Optional explicit display name

    Returns:
        Created User instance

    Raises:
        AuthError: ``invalid-email`` or ``email-already-in-use``
    """
    try:
        validate_email(email)
    except ValidationError:
        raise AuthError(AuthError.INVALID_EMAIL, f"Invalid email address: {email}")

    email = User.objects.normalize_email(email)
    if User.objects.filter(email__iexact=email).exists():
        raise AuthError(AuthError.EMAIL_ALREADY_IN_USE, "Email address already in use")

    try:
        with transaction.atomic():
            user = User.objects.create_user(
                email=email,
                password=password,
                name=name,
                surname=surname,
                display_name=display_name,
            )
            issue_verification_token(user)
    except IntegrityError:
        # Lost a race against a concurrent signup with the same email
        raise AuthError(AuthError.EMAIL_ALREADY_IN_USE, "Email address already in use")

    logger.info("Registered user", user_id=str(user.id))
    transaction.on_commit(lambda: send_verification_email(user))
    return user
