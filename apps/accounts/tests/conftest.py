import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User, UserRole


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def user(db):
    """Create and return a test user."""
    return User.objects.create_user(
        email='testuser@example.com',
        password='TestPass123!',
        name='Test',
        surname='User',
        email_verified=True,
    )


@pytest.fixture
def user_unverified(db):
    """Create and return a user with unverified email."""
    user = User.objects.create_user(
        email='unverified@example.com',
        password='TestPass123!',
        name='Unverified',
        surname='User',
        email_verified=False,
    )
    user.verification_token = 'test-verification-token'
    user.save()
    return user


@pytest.fixture
def user_inactive(db):
    """Create and return an inactive user."""
    return User.objects.create_user(
        email='inactive@example.com',
        password='TestPass123!',
        name='Inactive',
        surname='User',
        is_active=False,
    )


@pytest.fixture
def cafe_admin(db):
    """Create and return the admin of a cafe."""
    return User.objects.create_user(
        email='cafeadmin@example.com',
        password='AdminPass123!',
        name='Cafe',
        surname='Admin',
        email_verified=True,
        role=UserRole.ADMIN,
        merchant_name='CafeA',
    )


@pytest.fixture
def superadmin(db):
    """Create and return a superadmin."""
    return User.objects.create_superuser(
        email='super@example.com',
        password='SuperPass123!',
        name='Super',
        surname='Admin',
    )


@pytest.fixture
def authenticated_client(api_client, user):
    """Return an authenticated API client using JWT."""
    refresh = RefreshToken.for_user(user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def unverified_client(api_client, user_unverified):
    """Return API client authenticated as the unverified user."""
    refresh = RefreshToken.for_user(user_unverified)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def superadmin_client(api_client, superadmin):
    """Return API client authenticated as superadmin."""
    refresh = RefreshToken.for_user(superadmin)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client
