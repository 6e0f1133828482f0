import json
from datetime import timedelta

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.models import User, UserRole
from apps.loyalty.models import Coupon


def _client_for(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture(autouse=True)
def no_scan_cooldown(settings):
    """Scanner re-arms immediately; flags from other tests are dropped."""
    settings.LOYALTY_SCAN_COOLDOWN_SECONDS = 0
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def customer(db):
    """Create and return a loyalty customer."""
    return User.objects.create_user(
        email='customer@example.com',
        password='TestPass123!',
        name='Ayşe',
        surname='Yılmaz',
        email_verified=True,
    )


@pytest.fixture
def other_customer(db):
    return User.objects.create_user(
        email='other@example.com',
        password='TestPass123!',
        name='Other',
        surname='Customer',
        email_verified=True,
    )


@pytest.fixture
def cafe_admin(db):
    """Create and return the admin of CafeA."""
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
    return User.objects.create_superuser(
        email='super@example.com',
        password='SuperPass123!',
        name='Super',
        surname='Admin',
    )


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def customer_client(customer):
    """Return API client authenticated as the customer."""
    return _client_for(customer)


@pytest.fixture
def operator_client(cafe_admin):
    """Return API client authenticated as the CafeA admin."""
    return _client_for(cafe_admin)


@pytest.fixture
def superadmin_client(superadmin):
    return _client_for(superadmin)


@pytest.fixture
def coupon(customer):
    """A fresh CafeA coupon owned by the customer."""
    now = timezone.now()
    return Coupon.objects.create(
        user=customer,
        merchant_name='CafeA',
        created_at=now,
        expires_at=now + timedelta(days=3),
    )


@pytest.fixture
def expired_coupon(customer):
    now = timezone.now()
    return Coupon.objects.create(
        user=customer,
        merchant_name='CafeA',
        created_at=now - timedelta(days=4),
        expires_at=now - timedelta(days=1),
    )


@pytest.fixture
def stamp_payload(customer):
    """Factory for stamp QR payloads of the customer."""
    def make(timestamp='2024-05-01T10:15:30.123456', cafe='CafeA'):
        return json.dumps({
            'userId': str(customer.id),
            'cafeName': cafe,
            'timestamp': timestamp,
        })
    return make
