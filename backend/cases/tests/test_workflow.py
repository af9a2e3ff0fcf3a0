"""
Unit tests for the transition table in ``cases.workflow``.

No database access: ``apply`` and ``validate_payload`` are pure, so
every case state is built by hand.
"""

from __future__ import annotations

import dataclasses
import uuid

import pytest
from django.utils import timezone

from cases.models import CaseStatus, ReporterApproval, TimelineEventType, UrgencyLevel
from cases.workflow import (
    ALLOWED_COMMANDS,
    BeginWork,
    CaseState,
    Claim,
    ReporterApprove,
    ReporterReject,
    Resolve,
    StatusUpdate,
    Transfer,
    WorkflowPolicy,
    apply,
    is_consistent,
    validate_payload,
)
from core.domain.exceptions import CaseNotClaimable, IllegalTransition, ValidationFailed

REPORTER = 1
HELPER_A = 10
HELPER_B = 11
STRANGER = 99

NOW = timezone.now()
POLICY = WorkflowPolicy()

LONG_NOTE = "Dog is eating again and the wound is clean, bandage changed this morning."
PHOTOS = ("https://cdn.example.com/a.jpg", "https://cdn.example.com/b.jpg")


def _state(**overrides) -> CaseState:
    data = {
        "pk": 1,
        "case_id": uuid.uuid4(),
        "status": CaseStatus.OPEN,
        "assigned_helpers": (),
        "resolved_helpers": (),
        "reporter_id": REPORTER,
        "reporter_approval": None,
        "urgency_level": UrgencyLevel.MEDIUM,
        "version": 0,
    }
    data.update(overrides)
    return CaseState(**data)


def _assigned(*helpers) -> CaseState:
    return _state(status=CaseStatus.ASSIGNED, assigned_helpers=helpers or (HELPER_A,), version=1)


def _in_progress(*helpers) -> CaseState:
    return _state(status=CaseStatus.IN_PROGRESS, assigned_helpers=helpers or (HELPER_A,), version=2)


def _resolved(*helpers) -> CaseState:
    return _state(
        status=CaseStatus.RESOLVED,
        resolved_helpers=helpers or (HELPER_A,),
        reporter_approval=ReporterApproval.PENDING,
        version=3,
    )


# ═══════════════════════════════════════════════════════════════════
#  Claim
# ═══════════════════════════════════════════════════════════════════


class TestClaim:

    def test_first_claim_assigns_open_case(self):
        t = apply(_state(), Claim(actor_id=HELPER_A), now=NOW)

        assert t.event_type == TimelineEventType.ASSIGNED
        assert t.changes == {"status": CaseStatus.ASSIGNED, "assigned_helpers": [HELPER_A]}
        assert t.details["helper_id"] == HELPER_A
        assert t.details["previous_status"] == CaseStatus.OPEN

    def test_second_helper_is_appended(self):
        t = apply(_assigned(HELPER_A), Claim(actor_id=HELPER_B), now=NOW)

        assert t.changes["status"] == CaseStatus.ASSIGNED
        assert t.changes["assigned_helpers"] == [HELPER_A, HELPER_B]
        assert t.details["helpers"] == [HELPER_A, HELPER_B]

    def test_existing_member_cannot_claim_again(self):
        with pytest.raises(IllegalTransition):
            apply(_assigned(HELPER_A), Claim(actor_id=HELPER_A), now=NOW)

    @pytest.mark.parametrize("status", [CaseStatus.RESOLVED, CaseStatus.CLOSED])
    def test_resolved_or_closed_case_is_not_claimable(self, status):
        with pytest.raises(CaseNotClaimable):
            apply(_state(status=status), Claim(actor_id=HELPER_B), now=NOW)

    def test_claim_on_in_progress_is_illegal(self):
        with pytest.raises(IllegalTransition) as exc_info:
            apply(_in_progress(), Claim(actor_id=HELPER_B), now=NOW)
        assert exc_info.value.current == CaseStatus.IN_PROGRESS
        assert exc_info.value.command == "claim"

    def test_input_state_is_not_mutated(self):
        state = _assigned(HELPER_A)
        apply(state, Claim(actor_id=HELPER_B), now=NOW)
        assert state.assigned_helpers == (HELPER_A,)


# ═══════════════════════════════════════════════════════════════════
#  Helper commands
# ═══════════════════════════════════════════════════════════════════


class TestHelperCommands:

    def test_begin_work_moves_to_in_progress(self):
        t = apply(_assigned(), BeginWork(actor_id=HELPER_A), now=NOW)

        assert t.event_type == TimelineEventType.STATUS_UPDATED
        assert t.changes == {"status": CaseStatus.IN_PROGRESS}
        assert t.details == {
            "previous_status": CaseStatus.ASSIGNED,
            "new_status": CaseStatus.IN_PROGRESS,
        }

    def test_begin_work_requires_membership(self):
        with pytest.raises(IllegalTransition):
            apply(_assigned(), BeginWork(actor_id=STRANGER), now=NOW)

    def test_status_update_keeps_state_and_records_report(self):
        cmd = StatusUpdate(
            actor_id=HELPER_A,
            note=f"  {LONG_NOTE}  ",
            photo_urls=PHOTOS,
            animal_condition="improving",
        )
        t = apply(_in_progress(), cmd, now=NOW)

        assert t.event_type == TimelineEventType.STATUS_UPDATED
        assert t.changes == {}
        assert t.details["note"] == LONG_NOTE
        assert t.details["photo_count"] == 2
        assert t.details["photo_urls"] == list(PHOTOS)
        assert t.details["animal_condition"] == "improving"

    def test_status_update_not_allowed_before_work_begins(self):
        cmd = StatusUpdate(actor_id=HELPER_A, note=LONG_NOTE, photo_urls=PHOTOS)
        with pytest.raises(IllegalTransition):
            apply(_assigned(), cmd, now=NOW)

    def test_transfer_releases_everyone_and_escalates(self):
        state = _in_progress(HELPER_A, HELPER_B)
        t = apply(state, Transfer(actor_id=HELPER_B, reason=" Leaving town "), now=NOW)

        assert t.event_type == TimelineEventType.TRANSFERRED
        assert t.changes == {
            "status": CaseStatus.OPEN,
            "assigned_helpers": [],
            "urgency_level": UrgencyLevel.CRITICAL,
        }
        assert t.details == {
            "reason": "Leaving town",
            "released_helpers": [HELPER_A, HELPER_B],
            "previous_urgency": UrgencyLevel.MEDIUM,
        }

    def test_transfer_only_from_in_progress(self):
        with pytest.raises(IllegalTransition):
            apply(_assigned(), Transfer(actor_id=HELPER_A, reason="x"), now=NOW)

    @pytest.mark.parametrize("builder", [_assigned, _in_progress])
    def test_resolve_snapshots_helpers(self, builder):
        state = builder(HELPER_A, HELPER_B)
        t = apply(state, Resolve(actor_id=HELPER_A), now=NOW)

        assert t.event_type == TimelineEventType.RESOLVED
        assert t.changes["status"] == CaseStatus.RESOLVED
        assert t.changes["assigned_helpers"] == []
        assert t.changes["resolved_helpers"] == [HELPER_A, HELPER_B]
        assert t.changes["reporter_approval"] == ReporterApproval.PENDING
        assert t.changes["resolved_at"] == NOW

    def test_resolve_by_stranger_is_illegal(self):
        with pytest.raises(IllegalTransition):
            apply(_in_progress(), Resolve(actor_id=STRANGER), now=NOW)

    def test_resolve_on_open_case_is_illegal(self):
        with pytest.raises(IllegalTransition):
            apply(_state(), Resolve(actor_id=HELPER_A), now=NOW)


# ═══════════════════════════════════════════════════════════════════
#  Reporter commands
# ═══════════════════════════════════════════════════════════════════


class TestReporterCommands:

    def test_approve_closes_case(self):
        t = apply(_resolved(HELPER_A, HELPER_B), ReporterApprove(actor_id=REPORTER), now=NOW)

        assert t.event_type == TimelineEventType.REPORTER_APPROVED
        assert t.changes == {
            "status": CaseStatus.CLOSED,
            "reporter_approval": ReporterApproval.APPROVED,
        }
        assert t.details == {"helpers": [HELPER_A, HELPER_B]}

    def test_reject_restores_helpers(self):
        t = apply(
            _resolved(HELPER_A, HELPER_B),
            ReporterReject(actor_id=REPORTER, reason="Dog is still limping"),
            now=NOW,
        )

        assert t.event_type == TimelineEventType.REPORTER_REJECTED
        assert t.changes == {
            "status": CaseStatus.ASSIGNED,
            "assigned_helpers": [HELPER_A, HELPER_B],
            "resolved_helpers": [],
            "reporter_approval": None,
            "resolved_at": None,
        }
        assert t.details["approval"] == ReporterApproval.REJECTED
        assert t.details["restored_helpers"] == [HELPER_A, HELPER_B]
        assert is_consistent(t.changes["status"], t.changes["assigned_helpers"])

    def test_reject_without_helpers_to_restore_is_illegal(self):
        state = dataclasses.replace(_resolved(), resolved_helpers=())
        with pytest.raises(IllegalTransition):
            apply(state, ReporterReject(actor_id=REPORTER, reason="no"), now=NOW)

    @pytest.mark.parametrize("command", [
        ReporterApprove(actor_id=HELPER_A),
        ReporterReject(actor_id=HELPER_A, reason="not me"),
    ])
    def test_only_the_reporter_may_decide(self, command):
        with pytest.raises(IllegalTransition):
            apply(_resolved(), command, now=NOW)

    def test_approve_before_resolution_is_illegal(self):
        with pytest.raises(IllegalTransition):
            apply(_in_progress(), ReporterApprove(actor_id=REPORTER), now=NOW)

    def test_closed_case_accepts_nothing(self):
        closed = _state(status=CaseStatus.CLOSED, reporter_approval=ReporterApproval.APPROVED)
        for command in (
            BeginWork(actor_id=HELPER_A),
            Resolve(actor_id=HELPER_A),
            ReporterApprove(actor_id=REPORTER),
            ReporterReject(actor_id=REPORTER, reason="again"),
        ):
            with pytest.raises(IllegalTransition):
                apply(closed, command, now=NOW)


# ═══════════════════════════════════════════════════════════════════
#  Payload validation and table shape
# ═══════════════════════════════════════════════════════════════════


class TestValidatePayload:

    def test_short_note_rejected(self):
        cmd = StatusUpdate(actor_id=HELPER_A, note="Better today.", photo_urls=PHOTOS)
        with pytest.raises(ValidationFailed, match="at least 50"):
            validate_payload(cmd, POLICY)

    def test_whitespace_does_not_count_towards_note_length(self):
        cmd = StatusUpdate(actor_id=HELPER_A, note=" " * 60 + "short", photo_urls=PHOTOS)
        with pytest.raises(ValidationFailed):
            validate_payload(cmd, POLICY)

    def test_too_few_photos_rejected(self):
        cmd = StatusUpdate(actor_id=HELPER_A, note=LONG_NOTE, photo_urls=PHOTOS[:1])
        with pytest.raises(ValidationFailed, match="photos"):
            validate_payload(cmd, POLICY)

    def test_valid_status_update_passes(self):
        validate_payload(StatusUpdate(actor_id=HELPER_A, note=LONG_NOTE, photo_urls=PHOTOS), POLICY)

    def test_policy_limits_are_respected(self):
        relaxed = WorkflowPolicy(min_note_length=5, min_photos=0)
        validate_payload(StatusUpdate(actor_id=HELPER_A, note="Fine."), relaxed)

    @pytest.mark.parametrize("command", [
        Transfer(actor_id=HELPER_A, reason="   "),
        ReporterReject(actor_id=REPORTER, reason=""),
    ])
    def test_blank_reason_rejected(self, command):
        with pytest.raises(ValidationFailed):
            validate_payload(command, POLICY)

    def test_payload_free_commands_always_pass(self):
        for command in (Claim(actor_id=1), BeginWork(actor_id=1), Resolve(actor_id=1)):
            validate_payload(command, POLICY)


def test_every_status_has_a_row_in_the_table():
    assert set(ALLOWED_COMMANDS) == set(CaseStatus.values)
    assert ALLOWED_COMMANDS[CaseStatus.CLOSED] == frozenset()


@pytest.mark.parametrize("status, helpers, expected", [
    (CaseStatus.OPEN, [], True),
    (CaseStatus.OPEN, [HELPER_A], False),
    (CaseStatus.ASSIGNED, [HELPER_A], True),
    (CaseStatus.IN_PROGRESS, [], False),
    (CaseStatus.RESOLVED, [], True),
    (CaseStatus.CLOSED, [HELPER_A], False),
])
def test_is_consistent(status, helpers, expected):
    assert is_consistent(status, helpers) is expected
