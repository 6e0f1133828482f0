from rest_framework import serializers
from .models import StampBalance, Coupon
from .services import GIFT_THRESHOLD


class StampBalanceSerializer(serializers.ModelSerializer):
    """Stamp card progress at one cafe."""

    threshold = serializers.SerializerMethodField()

    class Meta:
        model = StampBalance
        fields = [
            'merchant_name',
            'count',
            'threshold',
            'has_pending_gift',
            'updated_at',
        ]
        read_only_fields = fields

    def get_threshold(self, obj):
        return GIFT_THRESHOLD


class CouponSerializer(serializers.ModelSerializer):
    """Gift coupon owned by the current user."""

    is_expired = serializers.SerializerMethodField()

    class Meta:
        model = Coupon
        fields = [
            'id',
            'merchant_name',
            'created_at',
            'expires_at',
            'is_expired',
        ]
        read_only_fields = fields

    def get_is_expired(self, obj):
        return obj.is_expired()


class ScanRequestSerializer(serializers.Serializer):
    """Text decoded by the scanning device."""

    payload = serializers.CharField(
        max_length=2048,
        trim_whitespace=False,
        help_text="Raw text decoded from the QR code"
    )


class ScanOutcomeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['accepted', 'rejected', 'system_error'])
    message = serializers.CharField()
    reason = serializers.CharField(allow_null=True)
    new_count = serializers.IntegerField(allow_null=True)
    gift_issued = serializers.BooleanField()
    customer_name = serializers.CharField(allow_null=True)
    rearm_after_seconds = serializers.IntegerField()


class CouponListFilterSerializer(serializers.Serializer):
    """Query parameters for the coupon list."""

    include_expired = serializers.BooleanField(required=False, default=False)
    merchant_name = serializers.CharField(required=False, allow_blank=True, default='')


class StampQRQuerySerializer(serializers.Serializer):
    """Query parameters for a stamp QR payload."""

    cafe = serializers.CharField(max_length=100)


class QRPayloadResponseSerializer(serializers.Serializer):
    payload = serializers.CharField()
    merchant_name = serializers.CharField()
    count = serializers.IntegerField(required=False)
