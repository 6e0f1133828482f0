"""Domain-specific exceptions for accounts services."""


class AccountsServiceError(Exception):
    """Base exception for accounts services."""
    pass


class AuthError(AccountsServiceError):
    """
    Authentication failure carrying a machine-readable code.

    Codes mirror the auth provider the mobile client was built against,
    so the client can keep switching on them.
    """

    EMAIL_ALREADY_IN_USE = 'email-already-in-use'
    INVALID_EMAIL = 'invalid-email'
    USER_DISABLED = 'user-disabled'
    USER_NOT_FOUND = 'user-not-found'
    WRONG_PASSWORD = 'wrong-password'

    def __init__(self, code, message=''):
        self.code = code
        self.message = message or code
        super().__init__(self.message)


class InvalidTokenError(AccountsServiceError):
    """Raised when verification token is invalid."""
    pass


class UserNotFoundError(AccountsServiceError):
    """Raised when user does not exist."""
    pass


class RoleChangeError(AccountsServiceError):
    """Raised when a role change is not allowed."""
    pass


AUTH_ERROR_MESSAGES = {
    AuthError.EMAIL_ALREADY_IN_USE: 'This email address is already registered.',
    AuthError.INVALID_EMAIL: 'Invalid email address.',
    AuthError.USER_DISABLED: 'This account has been disabled.',
    AuthError.USER_NOT_FOUND: 'No account is registered with this email address.',
    AuthError.WRONG_PASSWORD: 'Wrong password.',
}


def describe_auth_error(error):
    """
    Return user-facing text for an AuthError.

    Known codes get a fixed message; unknown codes pass the provider
    message through unchanged.
    """
    return AUTH_ERROR_MESSAGES.get(error.code, error.message)
