"""
core.domain.notifications — Notification creation helper.

Centralises notification creation so every app uses one consistent
entry-point rather than directly constructing ``Notification`` objects.

Design decisions
----------------
* **After commit** — callers that notify about a state change register
  the call with ``transaction.on_commit`` so that a notification is
  never created for a transition that rolled back, and a failing
  notification never rolls back a transition.
* **Supports multiple recipients** — pass a single ``User`` or an
  iterable of ``User`` instances.
* **Generic relation** — ``related_object`` is optional; if provided
  its ``ContentType`` and PK are stored via the ``Notification`` model's
  ``GenericForeignKey``.

Usage::

    from core.domain.notifications import NotificationService

    NotificationService.create(
        actor=event.actor,
        recipients=case.reporter,
        event_type="case_assigned",
        related_object=case,
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from django.contrib.contenttypes.models import ContentType
from django.db import models

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification

logger = logging.getLogger(__name__)

# ── Event-type → human-readable templates ───────────────────────────
_EVENT_TEMPLATES: dict[str, tuple[str, str]] = {
    # event_type: (title_template, message_template)
    # Message templates may reference keys of ``payload``.
    "case_assigned":          ("Helper Assigned",           "A helper has claimed case {case_ref}."),
    "case_helper_joined":     ("Helper Joined",             "Another helper joined case {case_ref}."),
    "case_status_updated":    ("Case Update",               "There is a new update on case {case_ref}."),
    "case_transferred":       ("Case Transferred",          "Case {case_ref} was released for other rescuers: {reason}"),
    "case_resolved":          ("Approval Needed",           "Case {case_ref} was marked resolved. Please approve or reject the resolution."),
    "case_approved":          ("Resolution Approved",       "The reporter approved the resolution of case {case_ref}."),
    "case_rejected":          ("Resolution Rejected",       "The reporter rejected the resolution of case {case_ref}: {reason}"),
    "case_status_reminder":   ("Status Update Due",         "Case {case_ref} has had no update for {hours} hours."),
}


class NotificationService:
    """
    Stateless helper for creating ``Notification`` records.

    All methods are classmethods — no instance state is needed.
    """

    @classmethod
    def create(
        cls,
        *,
        actor: User | None,
        recipients: User | Iterable[User],
        event_type: str,
        payload: dict[str, Any] | None = None,
        related_object: models.Model | None = None,
    ) -> list[Notification]:
        """
        Create one ``Notification`` per recipient.

        Args:
            actor:          The user who performed the action.  Never
                            notified about their own action.
            recipients:     A single ``User`` or iterable of ``User``
                            instances.
            event_type:     Key into ``_EVENT_TEMPLATES``.  If unknown
                            the raw event_type is used as title.
            payload:        Values interpolated into the message template.
            related_object: Optional model instance linked via
                            ``GenericForeignKey``.

        Returns:
            List of created ``Notification`` instances.
        """
        from core.models import Notification  # lazy import, circular deps

        # Normalise recipients to a list
        if isinstance(recipients, models.Model):
            recipients = [recipients]
        else:
            recipients = list(recipients)

        if actor is not None:
            recipients = [r for r in recipients if r.pk != actor.pk]

        if not recipients:
            logger.debug(
                "No recipients left for event_type=%s by actor=%s",
                event_type,
                actor,
            )
            return []

        title, template = _EVENT_TEMPLATES.get(
            event_type,
            (event_type.replace("_", " ").title(), f"Event: {event_type}"),
        )
        try:
            message = template.format(**(payload or {}))
        except KeyError:
            logger.warning("Missing payload key for notification template %s", event_type)
            message = template

        # Resolve GenericFK fields
        content_type = None
        object_id = None
        if related_object is not None:
            content_type = ContentType.objects.get_for_model(related_object)
            object_id = related_object.pk

        notifications = Notification.objects.bulk_create(
            [
                Notification(
                    recipient=recipient,
                    event_type=event_type,
                    title=title,
                    message=message,
                    content_type=content_type,
                    object_id=object_id,
                )
                for recipient in recipients
            ]
        )

        logger.info(
            "Created %d notification(s) [%s] by actor=%s",
            len(notifications),
            event_type,
            actor,
        )
        return notifications
