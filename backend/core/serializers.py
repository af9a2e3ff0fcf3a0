"""
Core app serializers.

**Response-only** serializers for the endpoints served by the core app.
They define the *output schema* of the system constants and
notification views and do **not** accept input data.

Architectural note
------------------
These serializers never import models from other apps.  They work with
plain Python dicts / lists produced by the service layer, keeping the
core app decoupled from ``cases`` and ``accounts``.
"""

from __future__ import annotations

from rest_framework import serializers


# ════════════════════════════════════════════════════════════════════
#  System Constants / Enums
# ════════════════════════════════════════════════════════════════════

class ChoiceItemSerializer(serializers.Serializer):
    """
    A single key-label pair representing one choice/enum option.

    Example::

        {"value": "open", "label": "Open"}
    """

    value = serializers.CharField(
        help_text="Machine-readable value to send in API requests.",
    )
    label = serializers.CharField(
        help_text="Human-readable display label for the UI.",
    )


class AllowedCommandsSerializer(serializers.Serializer):
    """
    Workflow commands accepted in one case status.

    Example::

        {"status": "assigned", "commands": ["begin_work", "claim", "resolve"]}
    """

    status = serializers.CharField(help_text="Case status value.")
    commands = serializers.ListField(
        child=serializers.CharField(),
        help_text="Command names accepted in this status (guards still apply).",
    )


class SystemConstantsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/constants/``.

    Provides all system-wide choice enumerations so the frontend can
    dynamically build dropdowns, filters, and labels **without**
    hardcoding values, plus the transition table so it only offers
    actions that can succeed.

    Response shape::

        {
            "case_statuses": [{"value": "open", "label": "Open"}, ...],
            "timeline_event_types": [...],
            "animal_types": [...],
            "animal_conditions": [...],
            "progress_conditions": [...],
            "urgency_levels": [...],
            "user_types": [...],
            "allowed_commands": [
                {"status": "open", "commands": ["claim"]},
                ...
            ],
            "status_update_min_note_length": 50,
            "status_update_min_photos": 2
        }
    """

    case_statuses = ChoiceItemSerializer(
        many=True,
        help_text="All possible case workflow statuses (CaseStatus enum).",
    )
    timeline_event_types = ChoiceItemSerializer(
        many=True,
        help_text="Timeline event kinds (TimelineEventType enum).",
    )
    animal_types = ChoiceItemSerializer(many=True)
    animal_conditions = ChoiceItemSerializer(
        many=True,
        help_text="Condition options when reporting a case.",
    )
    progress_conditions = ChoiceItemSerializer(
        many=True,
        help_text="Condition options in a helper's status update.",
    )
    urgency_levels = ChoiceItemSerializer(many=True)
    user_types = ChoiceItemSerializer(many=True)
    allowed_commands = AllowedCommandsSerializer(
        many=True,
        help_text="Workflow commands accepted per status.",
    )
    status_update_min_note_length = serializers.IntegerField(
        help_text="Minimum characters in a status-update note.",
    )
    status_update_min_photos = serializers.IntegerField(
        help_text="Minimum photos attached to a status update.",
    )


# ════════════════════════════════════════════════════════════════════
#  Notifications
# ════════════════════════════════════════════════════════════════════

class NotificationSerializer(serializers.Serializer):
    """
    Read-only serializer for ``Notification`` instances.

    Used by the Notification ViewSet to list and retrieve notifications
    for the authenticated user.
    """

    id = serializers.IntegerField(read_only=True, help_text="Notification PK.")
    event_type = serializers.CharField(
        read_only=True,
        help_text="Machine-readable kind, e.g. 'case_assigned'.",
    )
    title = serializers.CharField(
        read_only=True,
        help_text="Short notification title.",
    )
    message = serializers.CharField(
        read_only=True,
        help_text="Full notification message body.",
    )
    is_read = serializers.BooleanField(
        read_only=True,
        help_text="Whether the recipient has marked this notification as read.",
    )
    created_at = serializers.DateTimeField(
        read_only=True,
        help_text="When the notification was created.",
    )
    content_type = serializers.StringRelatedField(
        read_only=True,
        help_text="Related content type (if any).",
    )
    object_id = serializers.IntegerField(
        read_only=True,
        allow_null=True,
        help_text="PK of the related object (if any).",
    )
