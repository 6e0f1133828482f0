from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User


class UserSerializer(serializers.ModelSerializer):
    """Basic user serializer for profile display."""

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'name',
            'surname',
            'display_name',
            'role',
            'merchant_name',
            'email_verified',
            'created_at',
            'last_login',
        ]
        read_only_fields = fields


class UserRegistrationSerializer(serializers.Serializer):
    """
    Serializer for user registration.

    Email format and uniqueness are left to the registration service so
    they come back as auth error codes.
    """

    email = serializers.CharField(max_length=255)
    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password],
        style={'input_type': 'password'}
    )
    password_confirm = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )
    name = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    surname = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')

    def validate(self, attrs):
        """Validate password confirmation."""
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({
                'password_confirm': 'Passwords do not match'
            })
        return attrs


class UserLoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.CharField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )


class AssignAdminSerializer(serializers.Serializer):
    """Input for appointing a cafe admin."""

    email = serializers.CharField(max_length=255)
    merchant_name = serializers.CharField(max_length=100)
    password = serializers.CharField(
        required=False,
        allow_blank=True,
        default='',
        write_only=True,
        style={'input_type': 'password'}
    )
    name = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    surname = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
