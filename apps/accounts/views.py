from rest_framework import status, serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import TokenError
from drf_spectacular.utils import extend_schema
from loguru import logger
from .permissions import IsSuperAdmin
from .serializers import (
    UserRegistrationSerializer,
    UserLoginSerializer,
    UserSerializer,
    AssignAdminSerializer,
)
from .services import (
    AuthError,
    InvalidTokenError,
    RoleChangeError,
    UserNotFoundError,
    describe_auth_error,
    register_user,
    authenticate_user,
    verify_user_email,
    check_email_verification,
    resend_verification_email,
    assign_admin,
    revoke_admin,
    list_admins,
)


# Response serializers for API documentation
class TokensResponseSerializer(serializers.Serializer):
    refresh = serializers.CharField()
    access = serializers.CharField()


class AuthResponseSerializer(serializers.Serializer):
    message = serializers.CharField()
    user = UserSerializer()
    tokens = TokensResponseSerializer()


class MessageResponseSerializer(serializers.Serializer):
    message = serializers.CharField()


class ErrorResponseSerializer(serializers.Serializer):
    error = serializers.CharField()
    code = serializers.CharField(required=False)


class LogoutRequestSerializer(serializers.Serializer):
    refresh = serializers.CharField(help_text="Refresh token to invalidate")


class VerifyEmailRequestSerializer(serializers.Serializer):
    token = serializers.CharField(help_text="Email verification token")


class VerificationStatusSerializer(serializers.Serializer):
    email_verified = serializers.BooleanField()


def _tokens_for(user):
    refresh = RefreshToken.for_user(user)
    return {
        'refresh': str(refresh),
        'access': str(refresh.access_token),
    }


def _auth_error_response(error, http_status=status.HTTP_400_BAD_REQUEST):
    return Response({
        'error': describe_auth_error(error),
        'code': error.code,
    }, status=http_status)


@extend_schema(
    request=UserRegistrationSerializer,
    responses={
        201: AuthResponseSerializer,
        400: ErrorResponseSerializer,
    },
    description="Create a customer account, send the verification email and receive JWT tokens.",
    tags=['auth'],
)
@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """Register a new user account."""
    serializer = UserRegistrationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    data = serializer.validated_data.copy()
    data.pop('password_confirm', None)

    try:
        user = register_user(**data)
    except AuthError as e:
        return _auth_error_response(e)

    return Response({
        'message': 'Registration successful. A verification email has been sent.',
        'user': UserSerializer(user).data,
        'tokens': _tokens_for(user),
    }, status=status.HTTP_201_CREATED)


@extend_schema(
    request=UserLoginSerializer,
    responses={
        200: AuthResponseSerializer,
        400: ErrorResponseSerializer,
        401: ErrorResponseSerializer,
        403: ErrorResponseSerializer,
    },
    description="Sign in with email and password. The response carries the role and verification state.",
    tags=['auth'],
)
@api_view(['POST'])
@permission_classes([AllowAny])
def login(request):
    """Login with email and password."""
    serializer = UserLoginSerializer(data=request.data)

    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        user = authenticate_user(
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password'],
        )
    except AuthError as e:
        http_status = (
            status.HTTP_403_FORBIDDEN
            if e.code == AuthError.USER_DISABLED
            else status.HTTP_401_UNAUTHORIZED
        )
        return _auth_error_response(e, http_status)

    message = 'Login successful'
    if not user.email_verified:
        message = 'Login successful. Please verify your email.'

    return Response({
        'message': message,
        'user': UserSerializer(user).data,
        'tokens': _tokens_for(user),
    })


@extend_schema(
    request=LogoutRequestSerializer,
    responses={
        200: MessageResponseSerializer,
        400: ErrorResponseSerializer,
    },
    description="Logout. The refresh token is validated; access tokens expire on their own.",
    tags=['auth'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout(request):
    """Logout the current session."""
    refresh_token = request.data.get('refresh')
    if refresh_token:
        try:
            RefreshToken(refresh_token)
        except TokenError:
            return Response({
                'error': 'Invalid token'
            }, status=status.HTTP_400_BAD_REQUEST)

    return Response({
        'message': 'Logout successful'
    })


@extend_schema(
    responses={200: UserSerializer},
    description="Get the current authenticated user's profile and role.",
    tags=['auth'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def get_current_user(request):
    """Get current authenticated user profile."""
    return Response(UserSerializer(request.user).data)


@extend_schema(
    request=VerifyEmailRequestSerializer,
    responses={
        200: MessageResponseSerializer,
        400: ErrorResponseSerializer,
    },
    description="Verify user's email address with verification token.",
    tags=['auth'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def verify_email(request):
    """Verify email with token."""
    try:
        verify_user_email(user_id=request.user.id, token=request.data.get('token'))
    except InvalidTokenError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response({
        'message': 'Email verified successfully'
    })


@extend_schema(
    responses={200: VerificationStatusSerializer},
    description="Re-read the account and report whether the email has been verified.",
    tags=['auth'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def verification_status(request):
    """Check email verification state."""
    return Response({
        'email_verified': check_email_verification(user_id=request.user.id)
    })


@extend_schema(
    request=None,
    responses={
        200: MessageResponseSerializer,
        400: ErrorResponseSerializer,
    },
    description="Send a new verification email.",
    tags=['auth'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def resend_verification(request):
    """Resend verification email."""
    try:
        resend_verification_email(user_id=request.user.id)
    except InvalidTokenError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response({
        'message': 'Verification email sent again.'
    })


@extend_schema(
    methods=['GET'],
    responses={200: UserSerializer(many=True)},
    description="List cafe admins (superadmin only). Filter with ?merchant_name=.",
    tags=['admins'],
)
@extend_schema(
    methods=['POST'],
    request=AssignAdminSerializer,
    responses={
        201: UserSerializer,
        400: ErrorResponseSerializer,
    },
    description="Appoint a cafe admin, creating the account if needed (superadmin only).",
    tags=['admins'],
)
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def admins(request):
    """List or add cafe admins."""
    if request.method == 'GET':
        queryset = list_admins(merchant_name=request.query_params.get('merchant_name'))
        return Response(UserSerializer(queryset, many=True).data)

    serializer = AssignAdminSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        user = assign_admin(**serializer.validated_data)
    except AuthError as e:
        return _auth_error_response(e)
    except RoleChangeError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    logger.info("Superadmin appointed cafe admin", by=str(request.user.id), user_id=str(user.id))
    return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@extend_schema(
    responses={
        200: UserSerializer,
        400: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
    },
    description="Demote a cafe admin back to a regular user (superadmin only).",
    tags=['admins'],
)
@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def remove_admin(request, user_id):
    """Remove admin role from a user."""
    try:
        user = revoke_admin(user_id=user_id)
    except UserNotFoundError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
    except RoleChangeError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response(UserSerializer(user).data)
