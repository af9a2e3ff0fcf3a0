"""
Core app services — **Service Layer**.

Contains the cross-app read services behind the ``/api/core/``
endpoints.  Views delegate all business logic to the service classes
defined here, keeping views thin and ensuring testability.

╔══════════════════════════════════════════════════════════════════════╗
║  CROSS-APP IMPORT RULEBOOK                                         ║
║                                                                    ║
║  The core app is imported by every other app, so it must never     ║
║  import their models at the **module level**.  Import inside the   ║
║  method that needs them, or use ``TYPE_CHECKING`` for hints:       ║
║       from __future__ import annotations                           ║
║       from typing import TYPE_CHECKING                             ║
║       if TYPE_CHECKING:                                            ║
║           from cases.models import Case                            ║
╚══════════════════════════════════════════════════════════════════════╝
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from django.db.models import QuerySet

from core.domain.exceptions import NotFound

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification


# ═══════════════════════════════════════════════════════════════════
#  System Constants Service
# ═══════════════════════════════════════════════════════════════════

class SystemConstantsService:
    """
    Gathers all system-wide choice enumerations and the workflow
    transition table into a single dict for the frontend.

    This service is **stateless** — it does not depend on the requesting
    user.  All constants are public information needed by the frontend
    to render dropdowns, labels and the buttons valid for each status.
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        """Return all system constants as a dict."""
        from accounts.models import UserType
        from cases.models import (
            AnimalCondition,
            AnimalType,
            CaseStatus,
            ProgressCondition,
            TimelineEventType,
            UrgencyLevel,
        )
        from cases.workflow import ALLOWED_COMMANDS, WorkflowPolicy

        to_list = SystemConstantsService._choices_to_list
        policy = WorkflowPolicy.from_settings()

        return {
            "case_statuses": to_list(CaseStatus),
            "timeline_event_types": to_list(TimelineEventType),
            "animal_types": to_list(AnimalType),
            "animal_conditions": to_list(AnimalCondition),
            "progress_conditions": to_list(ProgressCondition),
            "urgency_levels": to_list(UrgencyLevel),
            "user_types": to_list(UserType),
            "allowed_commands": [
                {"status": str(status), "commands": sorted(commands)}
                for status, commands in ALLOWED_COMMANDS.items()
            ],
            "status_update_min_note_length": policy.min_note_length,
            "status_update_min_photos": policy.min_photos,
        }

    @staticmethod
    def _choices_to_list(
        choices_class: type,
    ) -> list[dict[str, str]]:
        """
        Convert a Django ``TextChoices`` or ``IntegerChoices`` class to
        a list of ``{"value": ..., "label": ...}`` dicts.
        """
        return [
            {"value": str(value), "label": str(label)}
            for value, label in choices_class.choices
        ]


# ═══════════════════════════════════════════════════════════════════
#  Notification Service
# ═══════════════════════════════════════════════════════════════════

class NotificationService:
    """
    Handles listing and marking notifications as read for a given user.

    Creating notifications is ``core.domain.notifications.NotificationService``'s
    job; this class only serves the recipient's inbox.
    """

    def __init__(self, user: User) -> None:
        self.user = user

    def list_notifications(self, unread_only: bool = False) -> QuerySet:
        """Return notifications for ``self.user``, most recent first."""
        from core.models import Notification

        qs = (
            Notification.objects
            .filter(recipient=self.user)
            .select_related("content_type")
            .order_by("-created_at")
        )
        if unread_only:
            qs = qs.filter(is_read=False)
        return qs

    def mark_as_read(self, notification_id: int) -> Notification:
        """
        Mark a single notification as read.

        Raises
        ------
        NotFound
            The notification does not exist or belongs to someone else.
        """
        from core.models import Notification

        try:
            notification = Notification.objects.get(
                pk=notification_id,
                recipient=self.user,
            )
        except (Notification.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Notification {notification_id} not found.")

        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read", "updated_at"])
        return notification
