"""
Management command to delete expired gift coupons.

Usage:
    python manage.py purge_expired_coupons
    python manage.py purge_expired_coupons --dry-run
"""

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.loyalty.models import Coupon
from apps.loyalty.services import purge_expired_coupons


class Command(BaseCommand):
    help = 'Delete gift coupons past their expiry date'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Only report how many coupons would be deleted',
        )

    def handle(self, *args, **options):
        now = timezone.now()

        if options['dry_run']:
            count = Coupon.objects.filter(expires_at__lte=now).count()
            self.stdout.write(f'{count} expired coupon(s) would be deleted.')
            return

        deleted = purge_expired_coupons(now=now)
        self.stdout.write(self.style.SUCCESS(f'Deleted {deleted} expired coupon(s).'))
