"""
Cases app serializers.

Contains all Request and Response serializers for the Cases API.
Serializers handle field definitions, read/write constraints, and field-level
validation only.  **No business logic or workflow transitions live here**;
business rules such as the minimum note length of a status update are
enforced by the workflow engine so that every entry point gets the same
``validation_failed`` error.

Structure
---------
1. Filter / query-param serializers
2. Case read serializers (list, detail, timeline)
3. Case write serializers (report)
4. Workflow command serializers
5. Case message serializers
"""

from __future__ import annotations

import re
from typing import Any

from rest_framework import serializers

from accounts.serializers import UserSummarySerializer

from .models import (
    AnimalCondition,
    AnimalType,
    Case,
    CaseMessage,
    CaseStatus,
    MessagePriority,
    MessageType,
    ProgressCondition,
    TimelineEvent,
    UrgencyLevel,
)

# ── Phone number validation regex ───────────────────────────────────
_PHONE_REGEX = re.compile(r"^\+?\d{10,15}$")


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseFilterSerializer(serializers.Serializer):
    """
    Validates and cleans query-parameter filters for ``GET /api/cases/``.

    All fields are optional.  The view passes the validated dict directly
    to ``CaseQueryService.get_filtered_queryset``.

    Query Parameters
    ----------------
    ``status``          : str     — one or more ``CaseStatus`` values, comma-separated
    ``animal_type``     : str     — one of ``AnimalType`` values
    ``urgency_level``   : str     — one of ``UrgencyLevel`` values
    ``assigned_to_me``  : bool    — only cases the caller is helping on
    ``reported_by_me``  : bool    — only cases the caller reported
    """

    status = serializers.CharField(
        required=False,
        help_text="Comma-separated case statuses. Options: " + ", ".join(CaseStatus.values) + ".",
    )
    animal_type = serializers.ChoiceField(
        choices=AnimalType.choices,
        required=False,
        help_text="Filter by animal type.",
    )
    urgency_level = serializers.ChoiceField(
        choices=UrgencyLevel.choices,
        required=False,
        help_text="Filter by urgency level.",
    )
    assigned_to_me = serializers.BooleanField(
        required=False,
        help_text="Only cases where the caller is an assigned helper.",
    )
    reported_by_me = serializers.BooleanField(
        required=False,
        help_text="Only cases reported by the caller.",
    )

    def validate_status(self, value: str) -> list[str]:
        """Split the comma-separated list and reject unknown statuses."""
        statuses = [s.strip() for s in value.split(",") if s.strip()]
        unknown = [s for s in statuses if s not in CaseStatus.values]
        if unknown:
            raise serializers.ValidationError(
                f"Unknown status(es): {', '.join(unknown)}. "
                f"Choose from {list(CaseStatus.values)}."
            )
        return statuses


# ═══════════════════════════════════════════════════════════════════
#  2. Case Read Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseListSerializer(serializers.ModelSerializer):
    """
    Compact representation for the list endpoint.

    Leaves out contact details and photos to keep list-page payloads
    small.
    """

    status_display = serializers.CharField(
        source="get_status_display",
        read_only=True,
    )
    urgency_display = serializers.CharField(
        source="get_urgency_level_display",
        read_only=True,
    )
    helper_count = serializers.SerializerMethodField()

    class Meta:
        model = Case
        fields = [
            "case_id",
            "status",
            "status_display",
            "animal_type",
            "animal_condition",
            "urgency_level",
            "urgency_display",
            "address",
            "latitude",
            "longitude",
            "helper_count",
            "version",
            "created_at",
            "last_status_update",
        ]
        read_only_fields = fields

    def get_helper_count(self, obj: Case) -> int:
        return len(obj.assigned_helpers or [])


class CaseDetailSerializer(serializers.ModelSerializer):
    """
    **Full case detail serializer.**

    Used for ``GET /api/cases/{case_id}/`` and as the response body of
    every workflow command.  All workflow fields are read-only; they
    change only through the command endpoints.
    """

    reporter = UserSummarySerializer(read_only=True)
    status_display = serializers.CharField(
        source="get_status_display",
        read_only=True,
    )

    class Meta:
        model = Case
        fields = [
            "case_id",
            "status",
            "status_display",
            "assigned_helpers",
            "reporter",
            "reporter_approval",
            "version",
            "animal_type",
            "animal_condition",
            "urgency_level",
            "description",
            "address",
            "landmarks",
            "latitude",
            "longitude",
            "is_approximate",
            "photos",
            "contact_phone",
            "contact_email",
            "last_status_update",
            "resolved_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TimelineEventSerializer(serializers.ModelSerializer):
    """Read-only serializer for the case audit trail."""

    actor = UserSummarySerializer(read_only=True)

    class Meta:
        model = TimelineEvent
        fields = [
            "sequence",
            "event_type",
            "actor",
            "details",
            "created_at",
        ]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════════
#  3. Case Write Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseReportSerializer(serializers.ModelSerializer):
    """
    Validates input for ``POST /api/cases/``.

    ``status``, ``reporter`` and every other workflow field are set by
    ``CaseReportService`` and must NOT be accepted from the client.
    ``urgency_level`` is optional and derived from the condition when
    omitted.
    """

    photos = serializers.ListField(
        child=serializers.URLField(max_length=500),
        required=False,
        default=list,
        help_text="URLs of photos already uploaded to media storage.",
    )

    class Meta:
        model = Case
        fields = [
            "animal_type",
            "animal_condition",
            "urgency_level",
            "description",
            "address",
            "landmarks",
            "latitude",
            "longitude",
            "is_approximate",
            "photos",
            "contact_phone",
            "contact_email",
        ]
        extra_kwargs = {
            "urgency_level": {"required": False},
            "description": {"required": True},
            "address": {"required": True},
            "contact_phone": {"required": True},
        }

    def validate_description(self, value: str) -> str:
        value = value.strip()
        if len(value) < 10:
            raise serializers.ValidationError(
                "Describe the animal and situation in at least 10 characters."
            )
        return value

    def validate_contact_phone(self, value: str) -> str:
        normalized = re.sub(r"[\s\-]", "", value)
        if not _PHONE_REGEX.match(normalized):
            raise serializers.ValidationError(
                "Enter a valid phone number (10-15 digits, optional leading +)."
            )
        return normalized

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        """Coordinates come in pairs."""
        has_lat = attrs.get("latitude") is not None
        has_lng = attrs.get("longitude") is not None
        if has_lat != has_lng:
            raise serializers.ValidationError(
                "latitude and longitude must be provided together."
            )
        return attrs


# ═══════════════════════════════════════════════════════════════════
#  4. Workflow Command Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseCommandSerializer(serializers.Serializer):
    """
    Request body shared by the payload-free commands (``claim``,
    ``begin-work``, ``resolve``, ``reporter-approve``).

    ``expected_version`` is optional.  When supplied, the command is
    rejected with ``concurrent_modification`` if the case has moved on,
    which makes client retries safe.
    """

    expected_version = serializers.IntegerField(
        required=False,
        min_value=0,
        help_text="Version of the case the client last saw.",
    )


class StatusUpdateSerializer(CaseCommandSerializer):
    """Request body for ``POST /api/cases/{case_id}/status-updates/``."""

    note = serializers.CharField(
        allow_blank=True,
        max_length=2000,
        trim_whitespace=False,
        help_text="Progress description (minimum length enforced by the workflow).",
    )
    photo_urls = serializers.ListField(
        child=serializers.URLField(max_length=500),
        required=False,
        default=list,
        help_text="URLs of the progress photos (minimum count enforced by the workflow).",
    )
    animal_condition = serializers.ChoiceField(
        choices=ProgressCondition.choices,
        required=False,
        default="",
        allow_blank=True,
        help_text="Animal's condition as observed by the helper.",
    )


class ReasonSerializer(CaseCommandSerializer):
    """Request body for ``transfer`` and ``reporter-reject``."""

    reason = serializers.CharField(
        allow_blank=True,
        max_length=1000,
        help_text="Why the case is transferred / the resolution rejected.",
    )


# ═══════════════════════════════════════════════════════════════════
#  5. Case Message Serializers
# ═══════════════════════════════════════════════════════════════════

# Users may not post as the system.
_USER_MESSAGE_TYPES = [
    (value, label) for value, label in MessageType.choices
    if value != MessageType.SYSTEM
]


class MessageFilterSerializer(serializers.Serializer):
    """Query parameters for ``GET /api/cases/{case_id}/messages/``."""

    limit = serializers.IntegerField(
        required=False,
        default=50,
        min_value=1,
        max_value=200,
        help_text="How many of the newest messages to return.",
    )
    offset = serializers.IntegerField(
        required=False,
        default=0,
        min_value=0,
        help_text="Skip this many of the newest messages.",
    )
    priority = serializers.ChoiceField(
        choices=MessagePriority.choices,
        required=False,
        help_text="Only messages of this priority.",
    )


class CaseMessageSerializer(serializers.ModelSerializer):
    """
    Read serializer for case messages.

    ``is_read`` is relative to the requesting user (passed in the
    serializer context as ``request``).
    """

    sender = UserSummarySerializer(read_only=True, allow_null=True)
    is_read = serializers.SerializerMethodField()

    class Meta:
        model = CaseMessage
        fields = [
            "id",
            "sender",
            "content",
            "message_type",
            "priority",
            "image_url",
            "is_read",
            "created_at",
        ]
        read_only_fields = fields

    def get_is_read(self, obj: CaseMessage) -> bool:
        request = self.context.get("request")
        if request is None:
            return False
        user_pk = request.user.pk
        if obj.sender_id == user_pk:
            return True
        return any(user.pk == user_pk for user in obj.read_by.all())


class CaseMessageCreateSerializer(serializers.ModelSerializer):
    """Request body for ``POST /api/cases/{case_id}/messages/``."""

    message_type = serializers.ChoiceField(
        choices=_USER_MESSAGE_TYPES,
        required=False,
        default=MessageType.TEXT,
    )

    class Meta:
        model = CaseMessage
        fields = ["content", "message_type", "priority", "image_url"]
        extra_kwargs = {
            "content": {"required": True},
            "priority": {"required": False},
            "image_url": {"required": False},
        }

    def validate_content(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Message content is required.")
        return value

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs.get("message_type") == MessageType.IMAGE and not attrs.get("image_url"):
            raise serializers.ValidationError(
                {"image_url": "Image messages need an image_url."}
            )
        return attrs
