"""Services for accounts business logic."""

from .exceptions import (
    AccountsServiceError,
    AuthError,
    InvalidTokenError,
    UserNotFoundError,
    RoleChangeError,
    describe_auth_error,
)
from .user_registration import register_user
from .user_authentication import authenticate_user
from .email_verification import (
    verify_user_email,
    check_email_verification,
    resend_verification_email,
)
from .role_management import assign_admin, revoke_admin, list_admins

__all__ = [
    # Exceptions
    'AccountsServiceError',
    'AuthError',
    'InvalidTokenError',
    'UserNotFoundError',
    'RoleChangeError',
    'describe_auth_error',
    # Services
    'register_user',
    'authenticate_user',
    'verify_user_email',
    'check_email_verification',
    'resend_verification_email',
    'assign_admin',
    'revoke_admin',
    'list_admins',
]
