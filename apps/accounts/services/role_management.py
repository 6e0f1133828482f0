"""
Role management service.

Only superadmins appoint cafe admins. Demoting an admin keeps the account
and its loyalty history; the user simply becomes a customer again.
"""

from uuid import UUID

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction
from loguru import logger

from apps.accounts.models import UserRole

from .exceptions import AuthError, RoleChangeError, UserNotFoundError

User = get_user_model()


@transaction.atomic
def assign_admin(
    *,
    email: str,
    merchant_name: str,
    password: str = "",
    name: str = "",
    surname: str = ""
) -> User:
    """
    Make a user the admin of a cafe.

    An existing account is promoted in place. Otherwise a new account is
    created with the given password, already verified since a superadmin
    vouches for it.

    Raises:
        RoleChangeError: If the merchant is blank, the target is a superadmin,
            or a new account is needed but no password was given
        AuthError: If the new account has an invalid email
    """
    merchant_name = merchant_name.strip()
    if not merchant_name:
        raise RoleChangeError("Cafe name is required for an admin")

    user = (
        User.objects
        .select_for_update()
        .filter(email__iexact=email)
        .first()
    )

    if user is None:
        if not password:
            raise RoleChangeError("Password is required to create a new admin account")
        try:
            validate_email(email)
        except ValidationError:
            raise AuthError(AuthError.INVALID_EMAIL, f"Invalid email address: {email}")
        user = User.objects.create_user(
            email=email,
            password=password,
            name=name,
            surname=surname,
            email_verified=True,
        )
    elif user.is_superadmin:
        raise RoleChangeError("Cannot change the role of a superadmin")

    if name or surname:
        user.name = name or user.name
        user.surname = surname or user.surname
        user.display_name = user.full_name()

    user.role = UserRole.ADMIN
    user.merchant_name = merchant_name
    user.save()

    logger.info("Assigned cafe admin", user_id=str(user.id), merchant=merchant_name)
    return user


@transaction.atomic
def revoke_admin(*, user_id: UUID) -> User:
    """
    Demote a cafe admin back to a regular user.

    Raises:
        UserNotFoundError: If the user does not exist
        RoleChangeError: If the user is not a cafe admin
    """
    try:
        user = User.objects.select_for_update().get(id=user_id)
    except User.DoesNotExist:
        raise UserNotFoundError(f"User with ID {user_id} not found")

    if user.role != UserRole.ADMIN:
        raise RoleChangeError("User is not a cafe admin")

    previous_merchant = user.merchant_name
    user.role = UserRole.USER
    user.merchant_name = ''
    user.save(update_fields=['role', 'merchant_name'])

    logger.info("Revoked cafe admin", user_id=str(user.id), merchant=previous_merchant)
    return user


def list_admins(*, merchant_name: str = None):
    """Return cafe admins, optionally for one cafe, ordered by email."""
    queryset = User.objects.filter(role=UserRole.ADMIN)
    if merchant_name:
        queryset = queryset.filter(merchant_name=merchant_name)
    return queryset.order_by('email')
