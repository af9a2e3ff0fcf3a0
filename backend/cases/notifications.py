"""
Case event notifications.

Turns committed ``TimelineEvent`` rows into in-app ``Notification``
records.  The engine never calls a notifier inline: dispatch is
registered with ``transaction.on_commit`` through :func:`dispatch`, so a
rolled-back transition notifies nobody and a failing notifier never
undoes a transition.

Routing table
-------------
┌────────────────────┬──────────────────────────────────────────────┐
│ event_type         │ recipient(s)                                 │
├────────────────────┼──────────────────────────────────────────────┤
│ assigned           │ reporter; helpers already on the case        │
│ status_updated     │ reporter                                     │
│ transferred        │ reporter                                     │
│ resolved           │ reporter (approval request)                  │
│ reporter_approved  │ helpers at resolution                        │
│ reporter_rejected  │ restored helpers                             │
└────────────────────┴──────────────────────────────────────────────┘

The actor is never notified about their own action.

The notifier also posts ``system`` chat messages on the case when a
helper joins, when the case is transferred and when the reporter
rejects a resolution.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from django.contrib.auth import get_user_model
from django.utils.module_loading import import_string

from core.domain.notifications import NotificationService
from core.domain.transactions import on_commit_safe

from .models import (
    CaseMessage,
    MessagePriority,
    MessageType,
    TimelineEvent,
    TimelineEventType,
)

logger = logging.getLogger(__name__)


class CaseEventNotifier:
    """
    Default notifier: one ``Notification`` row per recipient, plus the
    case's system chat messages.
    """

    def notify(self, event: TimelineEvent) -> None:
        case = event.case
        actor = event.actor
        payload = {"case_ref": case.short_ref, **event.details}

        if event.event_type == TimelineEventType.ASSIGNED:
            self._post(case, f"{self._name(actor)} joined the rescue.")
            self._send(actor, [case.reporter], "case_assigned", payload, case)
            co_helpers = [
                pk for pk in event.details.get("helpers", [])
                if pk != event.details.get("helper_id")
            ]
            self._send(actor, self._users(co_helpers), "case_helper_joined", payload, case)

        elif event.event_type == TimelineEventType.STATUS_UPDATED:
            self._send(actor, [case.reporter], "case_status_updated", payload, case)

        elif event.event_type == TimelineEventType.TRANSFERRED:
            self._post(
                case,
                f"Case released back to the open pool: {event.details.get('reason', '')}",
                MessagePriority.URGENT,
            )
            self._send(actor, [case.reporter], "case_transferred", payload, case)

        elif event.event_type == TimelineEventType.RESOLVED:
            self._send(actor, [case.reporter], "case_resolved", payload, case)

        elif event.event_type == TimelineEventType.REPORTER_APPROVED:
            helpers = self._users(event.details.get("helpers", []))
            self._send(actor, helpers, "case_approved", payload, case)

        elif event.event_type == TimelineEventType.REPORTER_REJECTED:
            self._post(
                case,
                f"Reporter rejected the resolution: {event.details.get('reason', '')}. "
                "The case is back with its helpers.",
                MessagePriority.URGENT,
            )
            helpers = self._users(event.details.get("restored_helpers", []))
            self._send(actor, helpers, "case_rejected", payload, case)

    @staticmethod
    def _name(user) -> str:
        if user is None:
            return "A helper"
        return user.display_name

    @staticmethod
    def _post(case, content, priority=MessagePriority.NORMAL) -> None:
        CaseMessage.objects.create(
            case=case,
            sender=None,
            content=content,
            message_type=MessageType.SYSTEM,
            priority=priority,
        )

    @staticmethod
    def _users(pks):
        if not pks:
            return []
        return list(get_user_model().objects.filter(pk__in=pks))

    @staticmethod
    def _send(actor, recipients, event_type, payload, case) -> None:
        if not recipients:
            return
        NotificationService.create(
            actor=actor,
            recipients=recipients,
            event_type=event_type,
            payload=payload,
            related_object=case,
        )


@lru_cache(maxsize=None)
def _notifier_class(path: str):
    return import_string(path)


def get_notifier(path: str):
    """Instantiate the notifier configured at dotted ``path``."""
    return _notifier_class(path)()


def dispatch(event: TimelineEvent, notifier_path: str) -> None:
    """
    Notify about ``event`` once the surrounding transaction commits.

    Errors raised by the notifier are logged and dropped.
    """

    def _run():
        try:
            get_notifier(notifier_path).notify(event)
        except Exception:
            logger.exception(
                "Notification dispatch failed for case %s event #%s (%s)",
                event.case_id,
                event.sequence,
                event.event_type,
            )

    on_commit_safe(_run)
