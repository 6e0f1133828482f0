from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter
from .permissions import IsScanOperator
from .serializers import (
    StampBalanceSerializer,
    CouponSerializer,
    ScanRequestSerializer,
    ScanOutcomeSerializer,
    CouponListFilterSerializer,
    StampQRQuerySerializer,
    QRPayloadResponseSerializer,
)
from .services import (
    CouponNotFoundError,
    RedemptionOrchestrator,
    ScanGate,
    ScanStatus,
    build_coupon_payload,
    build_stamp_payload,
    get_balance,
    get_balances,
    get_coupon,
    list_coupons,
)


SCAN_HTTP_STATUS = {
    ScanStatus.ACCEPTED: status.HTTP_200_OK,
    ScanStatus.REJECTED: status.HTTP_400_BAD_REQUEST,
    ScanStatus.SYSTEM_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@extend_schema(
    request=ScanRequestSerializer,
    responses={
        200: ScanOutcomeSerializer,
        400: ScanOutcomeSerializer,
        429: ScanOutcomeSerializer,
        503: ScanOutcomeSerializer,
    },
    description=(
        "Submit a scanned QR code. Adds a stamp or redeems a gift coupon. "
        "The scanner may submit again after `rearm_after_seconds`."
    ),
    tags=['loyalty'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsScanOperator])
def scan(request):
    """Process one scanned code for the operator's cafe."""
    serializer = ScanRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    gate = ScanGate(request.user.pk)
    if not gate.acquire():
        return Response({
            'status': ScanStatus.REJECTED,
            'message': 'The scanner is not ready yet. Please wait a moment.',
            'reason': 'ScannerBusy',
            'new_count': None,
            'gift_issued': False,
            'customer_name': None,
            'rearm_after_seconds': gate.cooldown,
        }, status=status.HTTP_429_TOO_MANY_REQUESTS)

    try:
        outcome = RedemptionOrchestrator().process(
            serializer.validated_data['payload'],
            operator_merchant=request.user.merchant_name or None,
        )
    finally:
        gate.release()

    return Response(outcome.to_dict(), status=SCAN_HTTP_STATUS[outcome.status])


@extend_schema(
    responses={200: StampBalanceSerializer(many=True)},
    description="Stamp cards of the current user, one per cafe.",
    tags=['loyalty'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def balances(request):
    """List the current user's stamp balances."""
    queryset = get_balances(user=request.user)
    return Response(StampBalanceSerializer(queryset, many=True).data)


@extend_schema(
    parameters=[CouponListFilterSerializer],
    responses={200: CouponSerializer(many=True)},
    description="Gift coupons of the current user. Expired coupons are hidden unless include_expired=true.",
    tags=['loyalty'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def coupons(request):
    """List the current user's coupons."""
    filters = CouponListFilterSerializer(data=request.query_params)
    filters.is_valid(raise_exception=True)

    queryset = list_coupons(
        user=request.user,
        merchant_name=filters.validated_data['merchant_name'] or None,
        include_expired=filters.validated_data['include_expired'],
    )
    return Response(CouponSerializer(queryset, many=True).data)


@extend_schema(
    parameters=[
        OpenApiParameter('cafe', str, required=True, description='Cafe the stamp is collected at'),
    ],
    responses={200: QRPayloadResponseSerializer},
    description="Payload for the customer's stamp QR code. Each payload can be scanned once.",
    tags=['loyalty'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stamp_qr(request):
    """Build a fresh stamp QR payload for a cafe."""
    query = StampQRQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    merchant_name = query.validated_data['cafe'].strip()

    balance = get_balance(user=request.user, merchant_name=merchant_name)
    return Response({
        'payload': build_stamp_payload(user=request.user, merchant_name=merchant_name),
        'merchant_name': merchant_name,
        'count': balance.count,
    })


@extend_schema(
    responses={
        200: QRPayloadResponseSerializer,
        404: None,
    },
    description="Payload for the QR code that redeems one of the customer's coupons.",
    tags=['loyalty'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def coupon_qr(request, coupon_id):
    """Build the redemption QR payload for a coupon."""
    try:
        coupon = get_coupon(user=request.user, coupon_id=coupon_id)
    except CouponNotFoundError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)

    return Response({
        'payload': build_coupon_payload(coupon),
        'merchant_name': coupon.merchant_name,
    })
