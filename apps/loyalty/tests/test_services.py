"""
Service layer unit tests for loyalty app.

Tests cover:
- QR payload decoding
- Replay protection for stamp codes
- Stamp counting and coupon issuance
- Coupon redemption and expiry
- Scan orchestration and error classification
- Scanner re-arm flag
"""

import json
from datetime import timedelta
from io import StringIO
from unittest.mock import patch
from uuid import uuid4

import pytest
from django.core.management import call_command
from django.db import DatabaseError, OperationalError
from django.utils import timezone

from apps.loyalty.models import Coupon, ScanToken, StampBalance
from apps.loyalty.services import (
    GIFT_THRESHOLD,
    AlreadyUsedError,
    CouponExpiredError,
    CouponNotFoundError,
    CouponRedemption,
    InvalidFormatError,
    MerchantMismatchError,
    MissingMerchantError,
    MissingTimestampError,
    RedemptionOrchestrator,
    ScanGate,
    ScanStatus,
    StampGrant,
    UnknownQRTypeError,
    add_stamp,
    build_coupon_payload,
    build_stamp_payload,
    check_and_mark,
    decode_payload,
    get_balance,
    issue_coupon,
    list_coupons,
    purge_expired_coupons,
    redeem_coupon,
    redeem_oldest_coupon,
)
from apps.loyalty.services.qr_payload import normalize_timestamp


# =============================================================================
# QR Payload Tests
# =============================================================================

class TestDecodePayload:
    """Tests for qr_payload.py; no database needed."""

    def test_stamp_payload(self):
        request = decode_payload(json.dumps({
            'userId': 'u-1',
            'cafeName': 'CafeA',
            'timestamp': '2024-05-01T10:15:30.123456',
        }))
        assert request == StampGrant('u-1', 'CafeA', '20240501T101530123456')

    def test_coupon_payload(self):
        request = decode_payload(json.dumps({
            'userId': 'u-1',
            'cafeName': 'CafeA',
            'couponId': 'c-9',
        }))
        assert request == CouponRedemption('u-1', 'CafeA', 'c-9')

    def test_coupon_id_wins_over_timestamp(self):
        request = decode_payload(json.dumps({
            'userId': 'u-1',
            'cafeName': 'CafeA',
            'couponId': 'c-9',
            'timestamp': '2024',
        }))
        assert isinstance(request, CouponRedemption)

    def test_merchant_name_alias(self):
        request = decode_payload('{"userId": "u-1", "merchantName": "CafeB", "timestamp": "1"}')
        assert request.merchant_name == 'CafeB'

    @pytest.mark.parametrize('raw', [
        'not json, not type:id',
        '',
        '"just a string"',
        '[1, 2, 3]',
        'coffee:',
    ])
    def test_invalid_format(self, raw):
        with pytest.raises(InvalidFormatError) as exc_info:
            decode_payload(raw)
        assert exc_info.value.reason == 'InvalidFormat'

    def test_missing_merchant(self):
        with pytest.raises(MissingMerchantError):
            decode_payload('{"userId": "u-1", "timestamp": "2024"}')

    def test_missing_timestamp(self):
        with pytest.raises(MissingTimestampError):
            decode_payload('{"userId": "u-1", "cafeName": "CafeA"}')

    def test_punctuation_only_timestamp(self):
        with pytest.raises(MissingTimestampError):
            decode_payload('{"userId": "u-1", "cafeName": "CafeA", "timestamp": "--:--"}')

    def test_oversized_cafe_name(self):
        payload = json.dumps({'userId': 'u-1', 'cafeName': 'C' * 101, 'timestamp': '1'})
        with pytest.raises(InvalidFormatError):
            decode_payload(payload)

    def test_cafe_name_at_column_limit(self):
        payload = json.dumps({'userId': 'u-1', 'cafeName': 'C' * 100, 'timestamp': '1'})
        assert decode_payload(payload).merchant_name == 'C' * 100

    def test_oversized_timestamp(self):
        payload = json.dumps({'userId': 'u-1', 'cafeName': 'CafeA', 'timestamp': '9' * 65})
        with pytest.raises(InvalidFormatError):
            decode_payload(payload)

    @pytest.mark.parametrize('raw', [
        '{"cafeName": "CafeA"}',
        '{}',
        'tea:u-1',
    ])
    def test_unknown_type(self, raw):
        with pytest.raises(UnknownQRTypeError):
            decode_payload(raw)

    @pytest.mark.parametrize('raw', ['coffee:u-1', 'KAHVE:u-1', '  stamp : u-1  '])
    def test_legacy_stamp(self, raw):
        assert decode_payload(raw) == StampGrant('u-1', None, None, legacy=True)

    @pytest.mark.parametrize('raw', ['gift:u-1', 'Hediye:u-1', 'coupon:u-1'])
    def test_legacy_gift(self, raw):
        assert decode_payload(raw) == CouponRedemption('u-1', None, None, legacy=True)

    def test_normalize_timestamp(self):
        assert normalize_timestamp('2024-05-01T10:15:30.123+03:00') == '20240501T1015301230300'

    def test_built_stamp_payload_decodes(self, customer):
        now = timezone.now()
        request = decode_payload(build_stamp_payload(user=customer, merchant_name='CafeA', now=now))
        assert request.user_id == str(customer.id)
        assert request.merchant_name == 'CafeA'
        assert request.token == normalize_timestamp(now.isoformat())


# =============================================================================
# Replay Guard Tests
# =============================================================================

@pytest.mark.django_db
class TestReplayGuard:

    def test_first_use_marks_token(self, customer):
        token = check_and_mark(user=customer, merchant_name='CafeA', token='abc123')
        assert token.merchant_name == 'CafeA'
        assert ScanToken.objects.filter(user=customer, token='abc123').exists()

    def test_second_use_rejected(self, customer):
        check_and_mark(user=customer, merchant_name='CafeA', token='abc123')

        with pytest.raises(AlreadyUsedError):
            check_and_mark(user=customer, merchant_name='CafeA', token='abc123')
        assert ScanToken.objects.count() == 1

    def test_same_token_other_customer(self, customer, other_customer):
        check_and_mark(user=customer, merchant_name='CafeA', token='abc123')
        check_and_mark(user=other_customer, merchant_name='CafeA', token='abc123')
        assert ScanToken.objects.count() == 2

    def test_concurrent_insert_rejected(self, customer):
        """Token inserted between the existence check and the insert."""
        ScanToken.objects.create(user=customer, token='abc123', merchant_name='CafeA')

        with patch('apps.loyalty.services.replay_guard.ScanToken.objects.filter') as mock_filter:
            mock_filter.return_value.exists.return_value = False
            with pytest.raises(AlreadyUsedError):
                check_and_mark(user=customer, merchant_name='CafeA', token='abc123')

        assert ScanToken.objects.count() == 1


# =============================================================================
# Stamp Ledger Tests
# =============================================================================

@pytest.mark.django_db
class TestStampLedger:

    def test_first_four_stamps(self, customer):
        for expected in range(1, GIFT_THRESHOLD):
            result = add_stamp(user=customer, merchant_name='CafeA')
            assert result.new_count == expected
            assert result.gift_issued is False
            assert result.coupon is None

        assert get_balance(user=customer, merchant_name='CafeA').count == 4
        assert Coupon.objects.count() == 0

    def test_fifth_stamp_issues_coupon(self, customer):
        for _ in range(GIFT_THRESHOLD - 1):
            add_stamp(user=customer, merchant_name='CafeA')

        before = timezone.now()
        result = add_stamp(user=customer, merchant_name='CafeA')

        assert result.new_count == 0
        assert result.gift_issued is True
        assert result.coupon.merchant_name == 'CafeA'
        assert result.coupon.user == customer

        expected_expiry = before + timedelta(days=3)
        assert abs(result.coupon.expires_at - expected_expiry) < timedelta(seconds=5)

        balance = StampBalance.objects.get(user=customer, merchant_name='CafeA')
        assert balance.count == 0
        assert balance.has_pending_gift is True

    def test_stamp_after_gift_clears_pending_flag(self, customer):
        for _ in range(GIFT_THRESHOLD + 1):
            add_stamp(user=customer, merchant_name='CafeA')

        balance = StampBalance.objects.get(user=customer, merchant_name='CafeA')
        assert balance.count == 1
        assert balance.has_pending_gift is False

    @pytest.mark.parametrize('stamps', [1, 4, 5, 6, 10, 12])
    def test_count_and_coupons_follow_stamp_total(self, customer, stamps):
        for _ in range(stamps):
            add_stamp(user=customer, merchant_name='CafeA')

        assert get_balance(user=customer, merchant_name='CafeA').count == stamps % GIFT_THRESHOLD
        assert Coupon.objects.filter(user=customer).count() == stamps // GIFT_THRESHOLD

    def test_cafes_are_independent(self, customer):
        for _ in range(3):
            add_stamp(user=customer, merchant_name='CafeA')
        add_stamp(user=customer, merchant_name='CafeB')

        assert get_balance(user=customer, merchant_name='CafeA').count == 3
        assert get_balance(user=customer, merchant_name='CafeB').count == 1

    def test_get_balance_without_card(self, customer):
        balance = get_balance(user=customer, merchant_name='Nowhere')
        assert balance.count == 0
        assert not StampBalance.objects.filter(user=customer).exists()

    def test_coupon_lifetime_setting(self, customer, settings):
        settings.LOYALTY_COUPON_LIFETIME_DAYS = 7
        now = timezone.now()
        coupon = issue_coupon(user=customer, merchant_name='CafeA', now=now)
        assert coupon.expires_at == now + timedelta(days=7)


# =============================================================================
# Coupon Store Tests
# =============================================================================

@pytest.mark.django_db
class TestCouponStore:

    def test_redeem_once(self, customer, coupon):
        name = redeem_coupon(user_id=customer.id, merchant_name='CafeA', coupon_id=coupon.id)
        assert name == 'Ayşe Yılmaz'
        assert not Coupon.objects.filter(id=coupon.id).exists()

        with pytest.raises(CouponNotFoundError):
            redeem_coupon(user_id=customer.id, merchant_name='CafeA', coupon_id=coupon.id)

    def test_wrong_cafe(self, customer, coupon):
        with pytest.raises(MerchantMismatchError):
            redeem_coupon(user_id=customer.id, merchant_name='CafeB', coupon_id=coupon.id)
        assert Coupon.objects.filter(id=coupon.id).exists()

    def test_other_customers_coupon(self, other_customer, coupon):
        with pytest.raises(CouponNotFoundError):
            redeem_coupon(user_id=other_customer.id, merchant_name='CafeA', coupon_id=coupon.id)
        assert Coupon.objects.filter(id=coupon.id).exists()

    def test_unknown_customer(self, coupon):
        with pytest.raises(CouponNotFoundError) as exc_info:
            redeem_coupon(user_id=uuid4(), merchant_name='CafeA', coupon_id=coupon.id)
        assert exc_info.value.message == 'Customer not found.'

    @pytest.mark.parametrize('coupon_id', ['not-a-uuid', ''])
    def test_malformed_coupon_id(self, customer, coupon_id):
        with pytest.raises(CouponNotFoundError):
            redeem_coupon(user_id=customer.id, merchant_name='CafeA', coupon_id=coupon_id)

    def test_expired_coupon_rejected(self, customer, expired_coupon):
        with pytest.raises(CouponExpiredError):
            redeem_coupon(user_id=customer.id, merchant_name='CafeA', coupon_id=expired_coupon.id)
        assert Coupon.objects.filter(id=expired_coupon.id).exists()

    def test_expired_coupon_accepted_when_not_enforced(self, customer, expired_coupon, settings):
        settings.LOYALTY_ENFORCE_COUPON_EXPIRY = False
        redeem_coupon(user_id=customer.id, merchant_name='CafeA', coupon_id=expired_coupon.id)
        assert not Coupon.objects.filter(id=expired_coupon.id).exists()

    def test_redeem_oldest_skips_expired(self, customer, coupon, expired_coupon):
        redeem_oldest_coupon(user_id=customer.id, merchant_name='CafeA')

        assert not Coupon.objects.filter(id=coupon.id).exists()
        assert Coupon.objects.filter(id=expired_coupon.id).exists()

    def test_redeem_oldest_picks_oldest(self, customer, coupon, settings):
        settings.LOYALTY_ENFORCE_COUPON_EXPIRY = False
        older = issue_coupon(
            user=customer,
            merchant_name='CafeA',
            now=timezone.now() - timedelta(hours=1),
        )
        redeem_oldest_coupon(user_id=customer.id, merchant_name='CafeA')

        assert not Coupon.objects.filter(id=older.id).exists()
        assert Coupon.objects.filter(id=coupon.id).exists()

    def test_redeem_oldest_none_left(self, customer, expired_coupon):
        with pytest.raises(CouponNotFoundError):
            redeem_oldest_coupon(user_id=customer.id, merchant_name='CafeA')

    def test_list_hides_expired(self, customer, coupon, expired_coupon):
        assert list(list_coupons(user=customer)) == [coupon]
        assert list(list_coupons(user=customer, include_expired=True)) == [expired_coupon, coupon]

    def test_purge_expired(self, customer, coupon, expired_coupon):
        assert purge_expired_coupons() == 1
        assert list(Coupon.objects.all()) == [coupon]

    def test_purge_command(self, coupon, expired_coupon):
        out = StringIO()
        call_command('purge_expired_coupons', '--dry-run', stdout=out)
        assert '1 expired coupon(s) would be deleted.' in out.getvalue()
        assert Coupon.objects.count() == 2

        out = StringIO()
        call_command('purge_expired_coupons', stdout=out)
        assert 'Deleted 1 expired coupon(s).' in out.getvalue()
        assert Coupon.objects.count() == 1


# =============================================================================
# Redemption Orchestrator Tests
# =============================================================================

@pytest.mark.django_db
class TestRedemptionOrchestrator:

    def test_stamp_accepted(self, customer, stamp_payload):
        outcome = RedemptionOrchestrator().process(stamp_payload(), operator_merchant='CafeA')

        assert outcome.status == ScanStatus.ACCEPTED
        assert outcome.accepted
        assert outcome.new_count == 1
        assert outcome.gift_issued is False
        assert outcome.customer_name == 'Ayşe Yılmaz'
        assert outcome.message == 'Stamp added for Ayşe Yılmaz: 1/5.'
        assert outcome.rearm_after_seconds == 0

    def test_replayed_stamp_rejected(self, customer, stamp_payload):
        orchestrator = RedemptionOrchestrator()
        orchestrator.process(stamp_payload(), operator_merchant='CafeA')
        outcome = orchestrator.process(stamp_payload(), operator_merchant='CafeA')

        assert outcome.status == ScanStatus.REJECTED
        assert outcome.reason == 'AlreadyUsed'
        assert get_balance(user=customer, merchant_name='CafeA').count == 1

    def test_fifth_scan_completes_card(self, customer, stamp_payload):
        orchestrator = RedemptionOrchestrator()
        for second in range(GIFT_THRESHOLD - 1):
            orchestrator.process(stamp_payload(f'2024-05-01T10:15:{second:02d}'), operator_merchant='CafeA')

        outcome = orchestrator.process(stamp_payload('2024-05-01T10:16:00'), operator_merchant='CafeA')

        assert outcome.accepted
        assert outcome.gift_issued is True
        assert outcome.new_count == 0
        assert outcome.message == 'Stamp card complete! Ayşe Yılmaz received a gift coupon.'
        assert Coupon.objects.filter(user=customer, merchant_name='CafeA').count() == 1

    def test_malformed_payload_changes_nothing(self, customer):
        outcome = RedemptionOrchestrator().process('garbage', operator_merchant='CafeA')

        assert outcome.status == ScanStatus.REJECTED
        assert outcome.reason == 'InvalidFormat'
        assert outcome.message == 'Invalid QR code format.'
        assert ScanToken.objects.count() == 0
        assert StampBalance.objects.count() == 0

    def test_code_for_other_cafe(self, customer, stamp_payload):
        outcome = RedemptionOrchestrator().process(stamp_payload(cafe='CafeB'), operator_merchant='CafeA')

        assert outcome.status == ScanStatus.REJECTED
        assert outcome.reason == 'MerchantMismatch'
        assert ScanToken.objects.count() == 0

    def test_superadmin_uses_payload_cafe(self, customer, stamp_payload):
        outcome = RedemptionOrchestrator().process(stamp_payload(cafe='CafeB'))

        assert outcome.accepted
        assert get_balance(user=customer, merchant_name='CafeB').count == 1

    def test_unknown_customer(self, db):
        payload = json.dumps({'userId': str(uuid4()), 'cafeName': 'CafeA', 'timestamp': '1'})
        outcome = RedemptionOrchestrator().process(payload, operator_merchant='CafeA')

        assert outcome.status == ScanStatus.REJECTED
        assert outcome.reason == 'NotFound'
        assert ScanToken.objects.count() == 0

    def test_inactive_customer(self, customer, stamp_payload):
        customer.is_active = False
        customer.save()

        outcome = RedemptionOrchestrator().process(stamp_payload(), operator_merchant='CafeA')
        assert outcome.reason == 'NotFound'

    def test_coupon_redeemed_once(self, customer, coupon):
        orchestrator = RedemptionOrchestrator()
        payload = build_coupon_payload(coupon)

        outcome = orchestrator.process(payload, operator_merchant='CafeA')
        assert outcome.accepted
        assert outcome.message == 'Gift coupon redeemed for Ayşe Yılmaz.'
        assert outcome.customer_name == 'Ayşe Yılmaz'

        outcome = orchestrator.process(payload, operator_merchant='CafeA')
        assert outcome.status == ScanStatus.REJECTED
        assert outcome.reason == 'NotFound'

    def test_expired_coupon(self, customer, expired_coupon):
        outcome = RedemptionOrchestrator().process(
            build_coupon_payload(expired_coupon),
            operator_merchant='CafeA',
        )
        assert outcome.reason == 'Expired'

    def test_ledger_failure_is_system_error(self, customer, stamp_payload):
        def broken_ledger(**kwargs):
            raise DatabaseError('disk I/O error')

        outcome = RedemptionOrchestrator(stamp_ledger=broken_ledger).process(
            stamp_payload(),
            operator_merchant='CafeA',
        )

        assert outcome.status == ScanStatus.SYSTEM_ERROR
        assert outcome.reason == 'SystemError'
        assert not outcome.accepted
        # the consumed token rolls back with the failed stamp
        assert ScanToken.objects.count() == 0

    def test_lock_timeout_is_system_error(self, customer, stamp_payload):
        """A ledger blocked past the database lock timeout does not hang the scan."""
        def locked_ledger(**kwargs):
            raise OperationalError('canceling statement due to lock timeout')

        outcome = RedemptionOrchestrator(stamp_ledger=locked_ledger).process(
            stamp_payload(),
            operator_merchant='CafeA',
        )

        assert outcome.status == ScanStatus.SYSTEM_ERROR
        assert outcome.reason == 'SystemError'
        assert ScanToken.objects.count() == 0

    def test_superadmin_scan_with_oversized_cafe(self, customer):
        payload = json.dumps({'userId': str(customer.id), 'cafeName': 'C' * 150, 'timestamp': '1'})
        outcome = RedemptionOrchestrator().process(payload)

        assert outcome.status == ScanStatus.REJECTED
        assert outcome.reason == 'InvalidFormat'
        assert StampBalance.objects.count() == 0

    def test_decoder_crash_is_system_error(self, db):
        def broken_decoder(raw_text):
            raise RuntimeError('boom')

        outcome = RedemptionOrchestrator(decoder=broken_decoder).process('anything')
        assert outcome.status == ScanStatus.SYSTEM_ERROR

    def test_fakes_only(self):
        """Orchestration runs against injected collaborators."""
        calls = []

        class FakeCustomer:
            def get_display_name(self):
                return 'Fake Customer'

        def fake_guard(**kwargs):
            calls.append(('guard', kwargs['token']))

        def fake_ledger(**kwargs):
            calls.append(('ledger', kwargs['merchant_name']))
            return type('Result', (), {'new_count': 3, 'gift_issued': False})()

        orchestrator = RedemptionOrchestrator(
            replay_guard=fake_guard,
            stamp_ledger=fake_ledger,
            user_lookup=lambda user_id: FakeCustomer(),
            allow_legacy_stamps=False,
            rearm_after_seconds=2,
        )
        outcome = orchestrator.process(
            '{"userId": "u-1", "cafeName": "CafeA", "timestamp": "42"}',
            operator_merchant='CafeA',
        )

        assert outcome.to_dict() == {
            'status': 'accepted',
            'message': 'Stamp added for Fake Customer: 3/5.',
            'reason': None,
            'new_count': 3,
            'gift_issued': False,
            'customer_name': 'Fake Customer',
            'rearm_after_seconds': 2,
        }
        assert calls == [('guard', '42'), ('ledger', 'CafeA')]

    def test_legacy_stamp_rejected_by_default(self, customer):
        outcome = RedemptionOrchestrator().process(f'coffee:{customer.id}', operator_merchant='CafeA')

        assert outcome.reason == 'MissingTimestamp'
        assert StampBalance.objects.count() == 0

    def test_legacy_stamp_allowed(self, customer):
        orchestrator = RedemptionOrchestrator(allow_legacy_stamps=True)
        outcome = orchestrator.process(f'coffee:{customer.id}', operator_merchant='CafeA')

        assert outcome.accepted
        assert get_balance(user=customer, merchant_name='CafeA').count == 1
        assert ScanToken.objects.count() == 0

    def test_legacy_code_needs_operator_cafe(self, customer):
        outcome = RedemptionOrchestrator(allow_legacy_stamps=True).process(f'coffee:{customer.id}')
        assert outcome.reason == 'MissingMerchant'

    def test_legacy_gift_redeems_oldest_coupon(self, customer, coupon):
        outcome = RedemptionOrchestrator().process(f'gift:{customer.id}', operator_merchant='CafeA')

        assert outcome.accepted
        assert not Coupon.objects.filter(id=coupon.id).exists()

    def test_legacy_gift_without_coupon(self, customer):
        outcome = RedemptionOrchestrator().process(f'gift:{customer.id}', operator_merchant='CafeA')
        assert outcome.reason == 'NotFound'


# =============================================================================
# Scan Gate Tests
# =============================================================================

class TestScanGate:

    def test_single_scan_in_flight(self):
        gate = ScanGate('operator-1', cooldown=0)
        assert gate.acquire() is True
        assert gate.is_armed() is False
        assert gate.acquire() is False

        gate.release()
        assert gate.is_armed() is True
        assert gate.acquire() is True

    def test_cooldown_holds_flag(self):
        gate = ScanGate('operator-2', cooldown=60)
        gate.acquire()
        gate.release()

        assert gate.is_armed() is False
        assert gate.acquire() is False

    def test_operators_are_independent(self):
        first = ScanGate('operator-3', cooldown=0)
        second = ScanGate('operator-4', cooldown=0)

        assert first.acquire() is True
        assert second.acquire() is True

    def test_cooldown_from_settings(self, settings):
        settings.LOYALTY_SCAN_COOLDOWN_SECONDS = 5
        assert ScanGate('operator-5').cooldown == 5
