"""
Accounts app serializers.

Contains all Request and Response serializers for the accounts API.
Serializers handle field definitions, read/write constraints, and
basic validation.  **No business logic** lives here — all domain
rules are delegated to ``services.py``.
"""

from __future__ import annotations

import re
from typing import Any

from django.contrib.auth import authenticate, get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import UserType

User = get_user_model()

_PHONE_REGEX = re.compile(r"^\+?\d{10,15}$")


# ═══════════════════════════════════════════════════════════════════
#  Authentication Serializers
# ═══════════════════════════════════════════════════════════════════


class RegisterRequestSerializer(serializers.ModelSerializer):
    """
    Validates new-user registration data.

    Required fields: username, password, email, phone_number,
    first_name, last_name.  ``user_type`` defaults to ``reporter``;
    administrators cannot be self-registered.

    The ``password`` field is write-only and will be hashed by the
    service layer before persisting.
    """

    password = serializers.CharField(
        write_only=True,
        min_length=8,
        style={"input_type": "password"},
        help_text="Minimum 8 characters.",
    )
    password_confirm = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
        help_text="Must match 'password'.",
    )
    user_type = serializers.ChoiceField(
        choices=[c for c in UserType.choices if c[0] != UserType.ADMIN],
        default=UserType.REPORTER,
    )

    class Meta:
        model = User
        fields = [
            "username",
            "password",
            "password_confirm",
            "email",
            "phone_number",
            "first_name",
            "last_name",
            "user_type",
            "organization",
        ]
        extra_kwargs = {
            "first_name": {"required": True},
            "last_name": {"required": True},
            # Uniqueness is checked by the service so that all
            # duplicates are reported together as a 409.
            "username": {"validators": []},
            "email": {"required": True, "validators": []},
            "phone_number": {"required": True, "validators": []},
        }

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        """
        Cross-field validation:
        1. Ensure password and password_confirm match.
        2. Validate phone_number format (10–15 digits, optional '+').
        """
        if attrs["password"] != attrs["password_confirm"]:
            raise serializers.ValidationError(
                {"password_confirm": "Passwords do not match."}
            )

        phone = re.sub(r"[\s-]", "", attrs.get("phone_number", ""))
        if not _PHONE_REGEX.match(phone):
            raise serializers.ValidationError(
                {"phone_number": "Phone number must contain 10 to 15 digits."}
            )
        attrs["phone_number"] = phone

        attrs.pop("password_confirm")
        return attrs


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Custom SimpleJWT serializer that:

    1. Accepts ``identifier`` + ``password`` instead of
       ``username`` + ``password``.
    2. Resolves the user via the ``MultiFieldAuthBackend``.
    3. Injects the ``user_type`` claim into the access token payload.
    """

    username_field = "identifier"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields.pop(self.username_field, None)
        self.fields["identifier"] = serializers.CharField(
            help_text="Username, Phone Number, or Email.",
        )

    @classmethod
    def get_token(cls, user) -> Any:
        token = super().get_token(user)
        token["user_type"] = user.user_type
        return token

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        """
        Authenticate using the custom ``MultiFieldAuthBackend``.

        Returns a dict containing ``access`` and ``refresh``; the
        authenticated user is exposed as ``self.user`` for the view.
        """
        user = authenticate(
            request=self.context.get("request"),
            identifier=attrs.get("identifier"),
            password=attrs.get("password"),
        )

        # ModelBackend.user_can_authenticate already rejects inactive users
        if user is None:
            raise serializers.ValidationError(
                {"detail": "Invalid credentials."},
                code="authentication",
            )

        refresh = self.get_token(user)
        self.user = user
        return {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
        }


# ═══════════════════════════════════════════════════════════════════
#  User Serializers
# ═══════════════════════════════════════════════════════════════════


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user representation nested inside case payloads."""

    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "display_name", "user_type", "organization"]
        read_only_fields = fields


class UserDetailSerializer(serializers.ModelSerializer):
    """Full profile of a user, returned by register, login and ``/me/``."""

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "phone_number",
            "first_name",
            "last_name",
            "user_type",
            "organization",
            "is_active",
            "date_joined",
        ]
        read_only_fields = fields


class MeUpdateSerializer(serializers.ModelSerializer):
    """
    Fields a user may change on their own profile.

    ``username`` and ``user_type`` are not editable here.
    """

    class Meta:
        model = User
        fields = [
            "email",
            "phone_number",
            "first_name",
            "last_name",
            "organization",
        ]
        extra_kwargs = {
            "email": {"validators": []},
            "phone_number": {"validators": []},
        }

    def validate_email(self, value: str) -> str:
        if (
            self.instance
            and User.objects.exclude(pk=self.instance.pk)
            .filter(email__iexact=value)
            .exists()
        ):
            raise serializers.ValidationError(
                "This email is already in use by another account."
            )
        return value

    def validate_phone_number(self, value: str) -> str:
        phone = re.sub(r"[\s-]", "", value)
        if not _PHONE_REGEX.match(phone):
            raise serializers.ValidationError(
                "Phone number must contain 10 to 15 digits."
            )
        if (
            self.instance
            and User.objects.exclude(pk=self.instance.pk)
            .filter(phone_number=phone)
            .exists()
        ):
            raise serializers.ValidationError(
                "This phone number is already in use by another account."
            )
        return phone


class ChangePasswordSerializer(serializers.Serializer):
    """Request body for ``POST /api/accounts/auth/change-password/``."""

    current_password = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
    )
    new_password = serializers.CharField(
        write_only=True,
        min_length=8,
        style={"input_type": "password"},
        help_text="Minimum 8 characters.",
    )
    new_password_confirm = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
    )

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs["new_password"] != attrs["new_password_confirm"]:
            raise serializers.ValidationError(
                {"new_password_confirm": "Passwords do not match."}
            )
        if attrs["new_password"] == attrs["current_password"]:
            raise serializers.ValidationError(
                {"new_password": "The new password must differ from the current one."}
            )
        attrs.pop("new_password_confirm")
        return attrs
