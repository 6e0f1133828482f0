"""
Management command to create sample data for testing the API.

Usage:
    python manage.py create_sample_data

This creates:
- 1 superadmin
- 2 cafe admins (Kahve Durağı, Moka Köşe)
- 3 customers (alice, bob, charlie)
- Stamp cards at both cafes
- Gift coupons for customers who completed a card
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from apps.accounts.models import User, UserRole
from apps.loyalty.models import Coupon, ScanToken, StampBalance
from apps.loyalty.services import add_stamp


CAFES = ['Kahve Durağı', 'Moka Köşe']


class Command(BaseCommand):
    help = 'Create sample data for testing the API'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before creating new sample data',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self.clear_data()

        self.stdout.write('Creating sample data...')

        # Create users
        users = self.create_users()

        # Collect stamps (alice completes a card at the first cafe)
        self.create_stamps(users)

        self.stdout.write(self.style.SUCCESS('Sample data created successfully!'))
        self.stdout.write('')
        self.stdout.write('Test accounts:')
        self.stdout.write('  super@example.com / admin123 (superadmin)')
        for index, cafe in enumerate(CAFES, start=1):
            self.stdout.write(f'  cafe{index}@example.com / admin123 (admin of {cafe})')
        self.stdout.write('  alice@example.com / password123')
        self.stdout.write('  bob@example.com / password123')
        self.stdout.write('  charlie@example.com / password123')

    def clear_data(self):
        """Clear all loyalty data and sample accounts from the database."""
        ScanToken.objects.all().delete()
        Coupon.objects.all().delete()
        StampBalance.objects.all().delete()
        User.objects.filter(is_superuser=False).delete()
        User.objects.filter(email='super@example.com').delete()

    def _account(self, email, password, **fields):
        user, _ = User.objects.get_or_create(
            email=email,
            defaults={'email_verified': True, **fields},
        )
        user.set_password(password)
        user.save()
        return user

    def create_users(self):
        """Create test users."""
        self.stdout.write('  Creating users...')

        users = {
            'super': self._account(
                'super@example.com', 'admin123',
                name='Super', surname='Admin', display_name='Super Admin',
                role=UserRole.SUPERADMIN, is_staff=True, is_superuser=True,
            ),
        }

        for index, cafe in enumerate(CAFES, start=1):
            users[f'cafe{index}'] = self._account(
                f'cafe{index}@example.com', 'admin123',
                name='Cafe', surname=f'Admin {index}', display_name=f'{cafe} Admin',
                role=UserRole.ADMIN, merchant_name=cafe,
            )

        for key, name, surname in [
            ('alice', 'Alice', 'Coffee'),
            ('bob', 'Bob', 'Barista'),
            ('charlie', 'Charlie', 'Caffeine'),
        ]:
            users[key] = self._account(
                f'{key}@example.com', 'password123',
                name=name, surname=surname, display_name=f'{name} {surname}',
            )

        return users

    def create_stamps(self, users):
        """Create stamp cards through the ledger so coupons are issued as usual."""
        self.stdout.write('  Collecting stamps...')

        plan = {
            'alice': {CAFES[0]: 6, CAFES[1]: 2},
            'bob': {CAFES[0]: 3},
            'charlie': {CAFES[1]: 4},
        }
        for key, cafes in plan.items():
            for cafe, stamps in cafes.items():
                for _ in range(stamps):
                    add_stamp(user=users[key], merchant_name=cafe)
