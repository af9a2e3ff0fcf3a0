"""
Case workflow — the transition table.

Pure functions and value objects only: nothing here touches the
database.  ``CaseWorkflowService`` loads a ``CaseState`` through the
``CaseStore``, asks :func:`apply` what the command does to it, and hands
the resulting ``Transition`` back to the store for a version-guarded
commit.

State-Machine Overview
----------------------
  OPEN
    → ASSIGNED                 (claim; first helper)
  ASSIGNED
    ↺ ASSIGNED                 (claim; co-helper joins)
    → IN_PROGRESS              (begin_work)
    → RESOLVED                 (resolve)
  IN_PROGRESS
    ↺ IN_PROGRESS              (status_update; note + photos)
    → OPEN                     (transfer; helpers released, urgency critical)
    → RESOLVED                 (resolve)
  RESOLVED
    → CLOSED                   (reporter_approve)
    → ASSIGNED                 (reporter_reject; helpers restored)

* ``claim`` on ``RESOLVED`` / ``CLOSED`` → ``CaseNotClaimable``.
* Any other command not listed for the current status, or whose guard
  fails → ``IllegalTransition``.
* Payload problems → ``ValidationFailed``, raised before any state is
  read.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, ClassVar

from django.conf import settings

from core import constants
from core.domain.exceptions import (
    CaseNotClaimable,
    IllegalTransition,
    ValidationFailed,
)

from .models import (
    ACTIVE_STATUSES,
    CaseStatus,
    ReporterApproval,
    TimelineEventType,
    UrgencyLevel,
)


# ═══════════════════════════════════════════════════════════════════
#  Policy
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class WorkflowPolicy:
    """Tunable workflow limits.  Defaults come from ``core.constants``."""

    max_cas_retries: int = constants.MAX_CAS_RETRIES
    min_note_length: int = constants.STATUS_UPDATE_MIN_NOTE_LENGTH
    min_photos: int = constants.STATUS_UPDATE_MIN_PHOTOS
    reminder_interval_hours: int = constants.REMINDER_INTERVAL_HOURS
    notifier: str = constants.DEFAULT_CASE_NOTIFIER

    @classmethod
    def from_settings(cls) -> WorkflowPolicy:
        """Build the policy from the ``CASE_WORKFLOW`` setting."""
        conf = getattr(settings, "CASE_WORKFLOW", {}) or {}
        return cls(
            max_cas_retries=int(conf.get("MAX_CAS_RETRIES", cls.max_cas_retries)),
            min_note_length=int(conf.get("STATUS_UPDATE_MIN_NOTE_LENGTH", cls.min_note_length)),
            min_photos=int(conf.get("STATUS_UPDATE_MIN_PHOTOS", cls.min_photos)),
            reminder_interval_hours=int(
                conf.get("REMINDER_INTERVAL_HOURS", cls.reminder_interval_hours)
            ),
            notifier=conf.get("NOTIFIER", cls.notifier),
        )


# ═══════════════════════════════════════════════════════════════════
#  Value objects
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class CaseState:
    """Snapshot of the workflow-relevant fields of a case."""

    pk: int
    case_id: Any
    status: str
    assigned_helpers: tuple[int, ...]
    resolved_helpers: tuple[int, ...]
    reporter_id: int
    reporter_approval: str | None
    urgency_level: str
    version: int


@dataclass(frozen=True)
class Transition:
    """
    Outcome of applying a command to a ``CaseState``.

    ``changes`` maps ``Case`` field names to their new values (never
    ``version``; the store bumps it).  ``event_type`` and ``details``
    describe the single timeline event the commit appends.
    """

    event_type: str
    changes: dict[str, Any]
    details: dict[str, Any] = field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════
#  Commands
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True, kw_only=True)
class Command:
    """
    Base class for workflow commands.

    ``expected_version`` pins the version the client last saw; when set,
    the command fails with ``ConcurrentModification`` instead of being
    re-applied to a newer state.
    """

    name: ClassVar[str] = ""

    actor_id: int
    expected_version: int | None = None


@dataclass(frozen=True, kw_only=True)
class Claim(Command):
    name: ClassVar[str] = "claim"


@dataclass(frozen=True, kw_only=True)
class BeginWork(Command):
    name: ClassVar[str] = "begin_work"


@dataclass(frozen=True, kw_only=True)
class StatusUpdate(Command):
    name: ClassVar[str] = "status_update"

    note: str
    photo_urls: tuple[str, ...] = ()
    animal_condition: str = ""


@dataclass(frozen=True, kw_only=True)
class Transfer(Command):
    name: ClassVar[str] = "transfer"

    reason: str


@dataclass(frozen=True, kw_only=True)
class Resolve(Command):
    name: ClassVar[str] = "resolve"


@dataclass(frozen=True, kw_only=True)
class ReporterApprove(Command):
    name: ClassVar[str] = "reporter_approve"


@dataclass(frozen=True, kw_only=True)
class ReporterReject(Command):
    name: ClassVar[str] = "reporter_reject"

    reason: str


# ═══════════════════════════════════════════════════════════════════
#  Transition table
# ═══════════════════════════════════════════════════════════════════

#: Maps status → command names accepted in that status.  Guards
#: (membership, reporter identity) are checked on top of this.
ALLOWED_COMMANDS: dict[str, frozenset[str]] = {
    CaseStatus.OPEN: frozenset({Claim.name}),
    CaseStatus.ASSIGNED: frozenset({Claim.name, BeginWork.name, Resolve.name}),
    CaseStatus.IN_PROGRESS: frozenset(
        {StatusUpdate.name, Transfer.name, Resolve.name}
    ),
    CaseStatus.RESOLVED: frozenset({ReporterApprove.name, ReporterReject.name}),
    CaseStatus.CLOSED: frozenset(),
}

#: Statuses in which a claim is final and never retried.
UNCLAIMABLE_STATUSES = frozenset({CaseStatus.RESOLVED, CaseStatus.CLOSED})


def validate_payload(command: Command, policy: WorkflowPolicy) -> None:
    """
    Check the command's own data, independent of any case state.

    Raises
    ------
    ValidationFailed
        Note too short, too few photos, or a blank reason.
    """
    if isinstance(command, StatusUpdate):
        note = (command.note or "").strip()
        if len(note) < policy.min_note_length:
            raise ValidationFailed(
                f"Status update note must be at least {policy.min_note_length} "
                f"characters (got {len(note)})."
            )
        if len(command.photo_urls) < policy.min_photos:
            raise ValidationFailed(
                f"Status update requires at least {policy.min_photos} photos "
                f"(got {len(command.photo_urls)})."
            )
    elif isinstance(command, (Transfer, ReporterReject)):
        if not (command.reason or "").strip():
            raise ValidationFailed("A reason is required.")


def apply(
    state: CaseState,
    command: Command,
    *,
    now: datetime.datetime,
) -> Transition:
    """
    Apply ``command`` to ``state`` and describe the resulting write.

    ``state`` is never mutated.  Payload validation is the caller's job
    (see :func:`validate_payload`).

    Raises
    ------
    CaseNotClaimable
        ``Claim`` on a resolved or closed case.
    IllegalTransition
        Command not accepted in ``state.status`` or its guard fails.
    """
    if isinstance(command, Claim) and state.status in UNCLAIMABLE_STATUSES:
        raise CaseNotClaimable(
            f"Case is {state.status} and can no longer be claimed."
        )

    if command.name not in ALLOWED_COMMANDS.get(state.status, frozenset()):
        raise IllegalTransition(current=state.status, command=command.name)

    handler = _HANDLERS[type(command)]
    return handler(state, command, now)


# ── Guards ──────────────────────────────────────────────────────────


def _require_helper(state: CaseState, command: Command) -> None:
    if command.actor_id not in state.assigned_helpers:
        raise IllegalTransition(
            current=state.status,
            command=command.name,
            reason="Only an assigned helper can do this.",
        )


def _require_reporter(state: CaseState, command: Command) -> None:
    if command.actor_id != state.reporter_id:
        raise IllegalTransition(
            current=state.status,
            command=command.name,
            reason="Only the reporter of the case can do this.",
        )


# ── Handlers ────────────────────────────────────────────────────────


def _claim(state: CaseState, command: Claim, now) -> Transition:
    helpers = list(state.assigned_helpers)
    if state.status == CaseStatus.OPEN and helpers:
        raise IllegalTransition(
            current=state.status,
            command=command.name,
            reason="Open case unexpectedly has helpers.",
        )
    if command.actor_id in helpers:
        raise IllegalTransition(
            current=state.status,
            command=command.name,
            reason="You are already assigned to this case.",
        )
    helpers.append(command.actor_id)
    return Transition(
        event_type=TimelineEventType.ASSIGNED,
        changes={
            "status": CaseStatus.ASSIGNED,
            "assigned_helpers": helpers,
        },
        details={
            "helper_id": command.actor_id,
            "previous_status": state.status,
            "helpers": helpers,
        },
    )


def _begin_work(state: CaseState, command: BeginWork, now) -> Transition:
    _require_helper(state, command)
    return Transition(
        event_type=TimelineEventType.STATUS_UPDATED,
        changes={"status": CaseStatus.IN_PROGRESS},
        details={
            "previous_status": state.status,
            "new_status": CaseStatus.IN_PROGRESS,
        },
    )


def _status_update(state: CaseState, command: StatusUpdate, now) -> Transition:
    _require_helper(state, command)
    return Transition(
        event_type=TimelineEventType.STATUS_UPDATED,
        changes={},
        details={
            "previous_status": state.status,
            "new_status": state.status,
            "note": command.note.strip(),
            "photo_count": len(command.photo_urls),
            "photo_urls": list(command.photo_urls),
            "animal_condition": command.animal_condition,
        },
    )


def _transfer(state: CaseState, command: Transfer, now) -> Transition:
    _require_helper(state, command)
    # A transferred case goes back to the pool as the top priority.
    return Transition(
        event_type=TimelineEventType.TRANSFERRED,
        changes={
            "status": CaseStatus.OPEN,
            "assigned_helpers": [],
            "urgency_level": UrgencyLevel.CRITICAL,
        },
        details={
            "reason": command.reason.strip(),
            "released_helpers": list(state.assigned_helpers),
            "previous_urgency": state.urgency_level,
        },
    )


def _resolve(state: CaseState, command: Resolve, now) -> Transition:
    _require_helper(state, command)
    helpers = list(state.assigned_helpers)
    return Transition(
        event_type=TimelineEventType.RESOLVED,
        changes={
            "status": CaseStatus.RESOLVED,
            "assigned_helpers": [],
            "resolved_helpers": helpers,
            "reporter_approval": ReporterApproval.PENDING,
            "resolved_at": now,
        },
        details={
            "previous_status": state.status,
            "helpers": helpers,
        },
    )


def _reporter_approve(state: CaseState, command: ReporterApprove, now) -> Transition:
    _require_reporter(state, command)
    return Transition(
        event_type=TimelineEventType.REPORTER_APPROVED,
        changes={
            "status": CaseStatus.CLOSED,
            "reporter_approval": ReporterApproval.APPROVED,
        },
        details={"helpers": list(state.resolved_helpers)},
    )


def _reporter_reject(state: CaseState, command: ReporterReject, now) -> Transition:
    _require_reporter(state, command)
    helpers = list(state.resolved_helpers)
    if not helpers:
        raise IllegalTransition(
            current=state.status,
            command=command.name,
            reason="There are no helpers to hand the case back to.",
        )
    return Transition(
        event_type=TimelineEventType.REPORTER_REJECTED,
        changes={
            "status": CaseStatus.ASSIGNED,
            "assigned_helpers": helpers,
            "resolved_helpers": [],
            "reporter_approval": None,
            "resolved_at": None,
        },
        details={
            "reason": command.reason.strip(),
            "approval": ReporterApproval.REJECTED,
            "restored_helpers": helpers,
        },
    )


_HANDLERS = {
    Claim: _claim,
    BeginWork: _begin_work,
    StatusUpdate: _status_update,
    Transfer: _transfer,
    Resolve: _resolve,
    ReporterApprove: _reporter_approve,
    ReporterReject: _reporter_reject,
}


def is_consistent(status: str, helpers) -> bool:
    """``True`` when the helper set agrees with the status."""
    return bool(helpers) == (status in ACTIVE_STATUSES)
