"""
Serializers for authentication.

This module provides DRF serializers for:
- The current user (read operations)
- JWT token issuance carrying the user's school and role

Related files:
    - views.py: MeView
    - settings.py: SIMPLE_JWT["TOKEN_OBTAIN_SERIALIZER"]
"""

from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from authentication.models import User
from tenants.models import Tenant


class TenantSummarySerializer(serializers.ModelSerializer):
    """Compact school representation embedded in user payloads."""

    class Meta:
        model = Tenant
        fields = ["id", "name", "school_code", "currency"]
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    """Serializer for the authenticated user (read operations)."""

    tenant = TenantSummarySerializer(read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "full_name", "role", "tenant", "date_joined"]
        read_only_fields = fields


class TenantTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Issue access/refresh tokens with tenant and role claims.

    Users of an inactive school are refused at login. Platform superusers
    without a school may still log in (they only use the Django admin).
    """

    default_error_messages = {
        **TokenObtainPairSerializer.default_error_messages,
        "inactive_tenant": "This school's account is not active.",
    }

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["role"] = user.role
        token["tenant_id"] = str(user.tenant_id) if user.tenant_id else None
        return token

    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_superuser and not self.user.has_active_tenant:
            raise serializers.ValidationError(
                self.error_messages["inactive_tenant"], code="inactive_tenant"
            )
        data["user"] = UserSerializer(self.user).data
        return data
