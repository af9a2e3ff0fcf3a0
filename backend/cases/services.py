"""
Cases app Service Layer.

This module is the **single source of truth** for all business logic
in the ``cases`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``CaseQueryService``        — Filtered queryset construction and lookups.
- ``CaseReportService``       — New case intake (status ``open``, version 0).
- ``CaseWorkflowService``     — Command execution with optimistic concurrency.
- ``TimelineService``         — Ordered audit trail of a case.
- ``CaseMessageService``      — Per-case chat between reporter and helpers.

Write Path
----------
Every workflow command goes through ``CaseWorkflowService.execute``::

  validate_payload(command)            ValidationFailed, nothing read yet
  loop up to MAX_CAS_RETRIES:
      state = CaseStore.load(case_id)  NotFound
      pinned version mismatch?         ConcurrentModification
      transition = apply(state, cmd)   IllegalTransition / CaseNotClaimable
      event = CaseStore.commit(...)    None → lost the race, go again
  ConcurrentModification

Notifications are scheduled with ``transaction.on_commit`` once the
commit succeeds.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import connection, transaction
from django.db.models import QuerySet
from django.utils import timezone

from core.domain.exceptions import ConcurrentModification, NotFound

from .models import (
    ACTIVE_STATUSES,
    AnimalCondition,
    Case,
    CaseMessage,
    CaseStatus,
    TimelineEvent,
    TimelineEventType,
    UrgencyLevel,
)
from .notifications import dispatch
from .store import CaseStore
from .workflow import (
    BeginWork,
    Claim,
    Command,
    ReporterApprove,
    ReporterReject,
    Resolve,
    StatusUpdate,
    Transfer,
    WorkflowPolicy,
    apply,
    validate_payload,
)

logger = logging.getLogger(__name__)

#: Conditions that raise the default urgency of a new report.
_HIGH_URGENCY_CONDITIONS = frozenset({AnimalCondition.INJURED, AnimalCondition.TRAPPED})


# ═══════════════════════════════════════════════════════════════════
#  Case Query Service
# ═══════════════════════════════════════════════════════════════════


class CaseQueryService:
    """
    Constructs filtered querysets for listing cases and resolves single
    cases by their external ``case_id``.
    """

    @staticmethod
    def get_filtered_queryset(
        requesting_user: Any,
        filters: dict[str, Any],
    ) -> QuerySet:
        """
        Build a filtered queryset of ``Case`` objects.

        Parameters
        ----------
        requesting_user : User
            From ``request.user``.  Used by the ``*_to_me`` / ``*_by_me``
            filters.
        filters : dict
            Cleaned query-parameter dict from ``CaseFilterSerializer``.
            Supported keys:
            - ``status``          : list[str]  (``CaseStatus`` values)
            - ``animal_type``     : str
            - ``urgency_level``   : str
            - ``assigned_to_me``  : bool
            - ``reported_by_me``  : bool

        Returns
        -------
        QuerySet[Case]
            Newest first, ``select_related("reporter")``.
        """
        qs = Case.objects.select_related("reporter").order_by("-created_at")

        statuses = filters.get("status")
        if statuses:
            qs = qs.filter(status__in=statuses)
        if filters.get("animal_type"):
            qs = qs.filter(animal_type=filters["animal_type"])
        if filters.get("urgency_level"):
            qs = qs.filter(urgency_level=filters["urgency_level"])
        if filters.get("reported_by_me"):
            qs = qs.filter(reporter=requesting_user)
        if filters.get("assigned_to_me"):
            qs = qs.filter(status__in=ACTIVE_STATUSES)
            if connection.features.supports_json_field_contains:
                qs = qs.filter(assigned_helpers__contains=[requesting_user.pk])
            else:
                # SQLite and Oracle have no JSON containment lookup; scan the
                # helper lists of active cases, which are few and short.
                active = qs.values_list("pk", "assigned_helpers")
                mine = [pk for pk, helpers in active if requesting_user.pk in (helpers or [])]
                qs = qs.filter(pk__in=mine)

        return qs

    @staticmethod
    def get_case_detail(case_id: Any) -> Case:
        """
        Return the case identified by ``case_id``.

        Raises
        ------
        NotFound
            Unknown ``case_id``.
        """
        try:
            return Case.objects.select_related("reporter").get(case_id=case_id)
        except Case.DoesNotExist:
            raise NotFound(f"Case {case_id} does not exist.")


# ═══════════════════════════════════════════════════════════════════
#  Case Report Service
# ═══════════════════════════════════════════════════════════════════


class CaseReportService:
    """Handles new rescue reports."""

    @staticmethod
    @transaction.atomic
    def report_case(
        validated_data: dict[str, Any],
        requesting_user: Any,
    ) -> Case:
        """
        Create a new case in ``open`` status together with its ``created``
        timeline event (sequence 0).

        Parameters
        ----------
        validated_data : dict
            Cleaned data from ``CaseReportSerializer``.
        requesting_user : User
            The reporter.  Only they may later approve or reject the
            resolution.

        Returns
        -------
        Case
            The new case (``version == 0``, no helpers).
        """
        data = dict(validated_data)
        if not data.get("urgency_level"):
            data["urgency_level"] = (
                UrgencyLevel.HIGH
                if data.get("animal_condition") in _HIGH_URGENCY_CONDITIONS
                else UrgencyLevel.MEDIUM
            )

        now = timezone.now()
        case = Case.objects.create(
            reporter=requesting_user,
            status=CaseStatus.OPEN,
            assigned_helpers=[],
            resolved_helpers=[],
            version=0,
            last_status_update=now,
            **data,
        )
        TimelineEvent.objects.create(
            case=case,
            sequence=0,
            event_type=TimelineEventType.CREATED,
            actor=requesting_user,
            details={
                "status": CaseStatus.OPEN,
                "animal_type": case.animal_type,
                "urgency_level": case.urgency_level,
                "photo_count": len(case.photos or []),
            },
        )

        logger.info(
            "Case %s reported by user %s (%s, %s)",
            case.case_id,
            requesting_user.pk,
            case.animal_type,
            case.urgency_level,
        )
        return case


# ═══════════════════════════════════════════════════════════════════
#  Case Workflow Service
# ═══════════════════════════════════════════════════════════════════


class CaseWorkflowService:
    """
    Executes workflow commands against the Case Store.

    ``execute`` is the only write path for workflow state.  The
    convenience methods build the matching command from request data
    and delegate to it.

    Design Pattern: State Machine + Command + Optimistic Concurrency
    ----------------------------------------------------------------
    Each attempt reads a fresh snapshot, applies the pure transition
    table from ``cases.workflow`` and commits with a version-guarded
    update.  A lost race re-runs the whole command against the new
    state, so two helpers claiming at once end up co-assigned rather
    than one silently overwriting the other.
    """

    @staticmethod
    def execute(
        case_id: Any,
        command: Command,
        policy: WorkflowPolicy | None = None,
    ) -> TimelineEvent:
        """
        Run ``command`` against ``case_id``.

        Parameters
        ----------
        case_id : UUID
            External case identifier.
        command : Command
            One of the dataclasses in ``cases.workflow``.
        policy : WorkflowPolicy, optional
            Defaults to ``WorkflowPolicy.from_settings()``.

        Returns
        -------
        TimelineEvent
            The event appended by the committed transition.

        Raises
        ------
        ValidationFailed
            Bad payload.  Raised before the case is read.
        NotFound
            Unknown ``case_id``.
        IllegalTransition, CaseNotClaimable
            The command does not apply to the current state.
        ConcurrentModification
            ``command.expected_version`` is stale, or every attempt lost
            the race.
        """
        policy = policy or WorkflowPolicy.from_settings()
        validate_payload(command, policy)

        for attempt in range(1, policy.max_cas_retries + 1):
            state = CaseStore.load(case_id)

            if (
                command.expected_version is not None
                and state.version != command.expected_version
            ):
                raise ConcurrentModification(
                    expected_version=command.expected_version,
                    actual_version=state.version,
                )

            transition = apply(state, command, now=timezone.now())
            event = CaseStore.commit(state, transition, command.actor_id)
            if event is not None:
                logger.info(
                    "Case %s: %s by user %s -> %s (version %d)",
                    case_id,
                    command.name,
                    command.actor_id,
                    transition.changes.get("status", state.status),
                    event.sequence,
                )
                dispatch(event, policy.notifier)
                return event

            logger.info(
                "Case %s: version conflict on %s (attempt %d/%d)",
                case_id,
                command.name,
                attempt,
                policy.max_cas_retries,
            )

        logger.warning(
            "Case %s: %s by user %s gave up after %d conflicting attempts",
            case_id,
            command.name,
            command.actor_id,
            policy.max_cas_retries,
        )
        raise ConcurrentModification()

    # ── Convenience entry points ────────────────────────────────────

    @staticmethod
    def claim(case_id: Any, requesting_user: Any, expected_version: int | None = None) -> TimelineEvent:
        return CaseWorkflowService.execute(
            case_id,
            Claim(actor_id=requesting_user.pk, expected_version=expected_version),
        )

    @staticmethod
    def begin_work(case_id: Any, requesting_user: Any, expected_version: int | None = None) -> TimelineEvent:
        return CaseWorkflowService.execute(
            case_id,
            BeginWork(actor_id=requesting_user.pk, expected_version=expected_version),
        )

    @staticmethod
    def add_status_update(
        case_id: Any,
        requesting_user: Any,
        validated_data: dict[str, Any],
    ) -> TimelineEvent:
        """Record a helper's progress report (note + photos)."""
        return CaseWorkflowService.execute(
            case_id,
            StatusUpdate(
                actor_id=requesting_user.pk,
                expected_version=validated_data.get("expected_version"),
                note=validated_data.get("note", ""),
                photo_urls=tuple(validated_data.get("photo_urls", ())),
                animal_condition=validated_data.get("animal_condition", ""),
            ),
        )

    @staticmethod
    def transfer(
        case_id: Any,
        requesting_user: Any,
        reason: str,
        expected_version: int | None = None,
    ) -> TimelineEvent:
        """Release the case back to the open pool."""
        return CaseWorkflowService.execute(
            case_id,
            Transfer(
                actor_id=requesting_user.pk,
                expected_version=expected_version,
                reason=reason,
            ),
        )

    @staticmethod
    def resolve(case_id: Any, requesting_user: Any, expected_version: int | None = None) -> TimelineEvent:
        return CaseWorkflowService.execute(
            case_id,
            Resolve(actor_id=requesting_user.pk, expected_version=expected_version),
        )

    @staticmethod
    def reporter_approve(case_id: Any, requesting_user: Any, expected_version: int | None = None) -> TimelineEvent:
        return CaseWorkflowService.execute(
            case_id,
            ReporterApprove(actor_id=requesting_user.pk, expected_version=expected_version),
        )

    @staticmethod
    def reporter_reject(
        case_id: Any,
        requesting_user: Any,
        reason: str,
        expected_version: int | None = None,
    ) -> TimelineEvent:
        """Send a resolved case back to its helpers."""
        return CaseWorkflowService.execute(
            case_id,
            ReporterReject(
                actor_id=requesting_user.pk,
                expected_version=expected_version,
                reason=reason,
            ),
        )


# ═══════════════════════════════════════════════════════════════════
#  Timeline Service
# ═══════════════════════════════════════════════════════════════════


class TimelineService:
    """Read access to the append-only audit trail."""

    @staticmethod
    def get_timeline(case_id: Any) -> QuerySet:
        """
        Return the events of ``case_id`` ordered by sequence.

        Raises
        ------
        NotFound
            Unknown ``case_id``.
        """
        case = CaseQueryService.get_case_detail(case_id)
        return (
            TimelineEvent.objects
            .filter(case=case)
            .select_related("actor")
            .order_by("sequence")
        )


# ═══════════════════════════════════════════════════════════════════
#  Case Message Service
# ═══════════════════════════════════════════════════════════════════


class CaseMessageService:
    """
    Chat messages on a case.

    Messages sit outside the workflow: posting one never touches the
    case version or the timeline.  Read state is tracked per user in
    ``CaseMessage.read_by``; a user's own messages always count as read.
    """

    @staticmethod
    def list_messages(case_id: Any, filters: dict[str, Any]) -> list[CaseMessage]:
        """
        Return a window of the case's messages, oldest first.

        Parameters
        ----------
        case_id : UUID
            External case identifier.
        filters : dict
            Validated data from ``MessageFilterSerializer``:

            - ``limit``    : int  (newest ``limit`` messages)
            - ``offset``   : int  (skip this many newest messages first)
            - ``priority`` : str, optional

        Raises
        ------
        NotFound
            Unknown ``case_id``.
        """
        case = CaseQueryService.get_case_detail(case_id)
        qs = (
            case.messages
            .select_related("sender")
            .prefetch_related("read_by")
            .order_by("-created_at", "-id")
        )
        if filters.get("priority"):
            qs = qs.filter(priority=filters["priority"])

        offset = filters.get("offset", 0)
        limit = filters.get("limit", 50)
        window = list(qs[offset:offset + limit])
        window.reverse()
        return window

    @staticmethod
    def send_message(
        case_id: Any,
        requesting_user: Any,
        validated_data: dict[str, Any],
    ) -> CaseMessage:
        """
        Post a message from ``requesting_user`` on ``case_id``.

        Raises
        ------
        NotFound
            Unknown ``case_id``.
        """
        case = CaseQueryService.get_case_detail(case_id)
        message = CaseMessage.objects.create(
            case=case,
            sender=requesting_user,
            **validated_data,
        )
        logger.info(
            "Case %s: %s message #%s from user %s",
            case.case_id,
            message.message_type,
            message.pk,
            requesting_user.pk,
        )
        return message

    @staticmethod
    def _unread(case: Case, user: Any) -> QuerySet:
        return case.messages.exclude(sender=user).exclude(read_by=user)

    @staticmethod
    def unread_count(case_id: Any, requesting_user: Any) -> int:
        """Count messages on ``case_id`` the user has not read yet."""
        case = CaseQueryService.get_case_detail(case_id)
        return CaseMessageService._unread(case, requesting_user).count()

    @staticmethod
    @transaction.atomic
    def mark_all_read(case_id: Any, requesting_user: Any) -> int:
        """
        Mark every message on ``case_id`` as read by ``requesting_user``.

        Returns
        -------
        int
            How many messages were unread before the call.
        """
        case = CaseQueryService.get_case_detail(case_id)
        unread_ids = list(
            CaseMessageService._unread(case, requesting_user).values_list("pk", flat=True)
        )
        through = CaseMessage.read_by.through
        through.objects.bulk_create(
            [through(casemessage_id=pk, user_id=requesting_user.pk) for pk in unread_ids],
            ignore_conflicts=True,
        )
        return len(unread_ids)
