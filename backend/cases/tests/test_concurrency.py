"""
Optimistic-concurrency tests for ``CaseWorkflowService.execute``.

Races are made deterministic by letting a competing command commit
between our ``load`` and our ``commit``.
"""

from __future__ import annotations

import random
import uuid

import pytest
from django.utils import timezone

from cases.models import Case, CaseStatus, TimelineEvent, TimelineEventType
from cases.services import CaseWorkflowService
from cases.store import CaseStore
from cases.workflow import (
    BeginWork,
    Claim,
    ReporterApprove,
    ReporterReject,
    Resolve,
    StatusUpdate,
    Transfer,
    WorkflowPolicy,
    apply,
    is_consistent,
)
from core.domain.exceptions import (
    CaseNotClaimable,
    ConcurrentModification,
    IllegalTransition,
    NotFound,
    ValidationFailed,
)
from core.domain.transactions import compare_and_swap


def _commit_competitor(case_id, command, load=CaseStore.load):
    """Commit ``command`` as if another worker got there first."""
    state = load(case_id)
    transition = apply(state, command, now=timezone.now())
    event = CaseStore.commit(state, transition, command.actor_id)
    assert event is not None
    return event


@pytest.mark.django_db
class TestClaimRace:

    def test_losing_claim_retries_and_joins(self, monkeypatch, create_user, report_case):
        case = report_case()
        r1 = create_user(user_type="volunteer")
        r2 = create_user(user_type="volunteer")

        real_load = CaseStore.load
        loads = []

        def racing_load(case_id):
            state = real_load(case_id)
            if not loads:
                _commit_competitor(case_id, Claim(actor_id=r2.pk), load=real_load)
            loads.append(state.version)
            return state

        monkeypatch.setattr(CaseStore, "load", staticmethod(racing_load))

        event = CaseWorkflowService.execute(case.case_id, Claim(actor_id=r1.pk))

        assert loads == [0, 1]
        assert event.sequence == 2
        assert event.details["previous_status"] == CaseStatus.ASSIGNED

        case.refresh_from_db()
        assert case.status == CaseStatus.ASSIGNED
        assert case.assigned_helpers == [r2.pk, r1.pk]
        assert case.version == 2

        assigned = TimelineEvent.objects.filter(case=case, event_type=TimelineEventType.ASSIGNED)
        # Only one of the two claims moved the case out of "open".
        assert [e.details["previous_status"] for e in assigned] == [
            CaseStatus.OPEN,
            CaseStatus.ASSIGNED,
        ]

    def test_lost_race_to_resolution_is_not_retried_into_a_claim(
        self, monkeypatch, create_user, report_case,
    ):
        case = report_case()
        r1 = create_user(user_type="volunteer")
        r2 = create_user(user_type="volunteer")
        CaseWorkflowService.execute(case.case_id, Claim(actor_id=r1.pk))

        real_load = CaseStore.load
        raced = []

        def racing_load(case_id):
            state = real_load(case_id)
            if not raced:
                raced.append(True)
                _commit_competitor(case_id, Resolve(actor_id=r1.pk), load=real_load)
            return state

        monkeypatch.setattr(CaseStore, "load", staticmethod(racing_load))

        # The retry sees a resolved case and refuses.
        with pytest.raises(CaseNotClaimable):
            CaseWorkflowService.execute(case.case_id, Claim(actor_id=r2.pk))

        case.refresh_from_db()
        assert case.status == CaseStatus.RESOLVED
        assert case.resolved_helpers == [r1.pk]


@pytest.mark.django_db
class TestRetryBudget:

    def test_gives_up_after_max_retries(self, monkeypatch, create_user, report_case, caplog):
        case = report_case()
        helper = create_user(user_type="volunteer")

        real_load = CaseStore.load
        loads = []

        def counting_load(case_id):
            loads.append(case_id)
            return real_load(case_id)

        monkeypatch.setattr(CaseStore, "load", staticmethod(counting_load))
        monkeypatch.setattr(
            CaseStore, "commit", staticmethod(lambda state, transition, actor_id: None),
        )

        with pytest.raises(ConcurrentModification):
            CaseWorkflowService.execute(
                case.case_id,
                Claim(actor_id=helper.pk),
                policy=WorkflowPolicy(max_cas_retries=3),
            )

        assert len(loads) == 3
        assert "gave up after 3 conflicting attempts" in caplog.text

        case.refresh_from_db()
        assert case.version == 0
        assert case.status == CaseStatus.OPEN
        assert TimelineEvent.objects.filter(case=case).count() == 1

    def test_illegal_command_is_not_retried(self, monkeypatch, create_user, report_case):
        case = report_case()
        stranger = create_user()

        real_load = CaseStore.load
        loads = []

        def counting_load(case_id):
            loads.append(case_id)
            return real_load(case_id)

        monkeypatch.setattr(CaseStore, "load", staticmethod(counting_load))

        with pytest.raises(IllegalTransition):
            CaseWorkflowService.execute(case.case_id, Resolve(actor_id=stranger.pk))
        assert len(loads) == 1


@pytest.mark.django_db
class TestExpectedVersion:

    def test_stale_version_is_rejected(self, create_user, report_case):
        case = report_case()
        r1 = create_user(user_type="volunteer")
        r2 = create_user(user_type="volunteer")
        CaseWorkflowService.execute(case.case_id, Claim(actor_id=r1.pk, expected_version=0))

        with pytest.raises(ConcurrentModification) as exc_info:
            CaseWorkflowService.execute(case.case_id, Claim(actor_id=r2.pk, expected_version=0))

        assert exc_info.value.expected_version == 0
        assert exc_info.value.actual_version == 1
        case.refresh_from_db()
        assert case.assigned_helpers == [r1.pk]

    def test_stale_version_through_api_is_409(self, create_user, report_case, auth_client):
        case = report_case()
        r1 = create_user(user_type="volunteer")
        r2 = create_user(user_type="volunteer")
        url = f"/api/cases/{case.case_id}/claim/"

        resp = auth_client(r1).post(url, {"expected_version": 0}, format="json")
        assert resp.status_code == 200, resp.data

        resp = auth_client(r2).post(url, {"expected_version": 0}, format="json")
        assert resp.status_code == 409
        assert resp.data["code"] == "concurrent_modification"

        resp = auth_client(r2).post(url, {"expected_version": 1}, format="json")
        assert resp.status_code == 200, resp.data
        assert resp.data["assigned_helpers"] == [r1.pk, r2.pk]


@pytest.mark.django_db
class TestCaseStore:

    def test_commit_with_stale_state_writes_nothing(self, create_user, report_case):
        case = report_case()
        r1 = create_user(user_type="volunteer")
        r2 = create_user(user_type="volunteer")

        stale = CaseStore.load(case.case_id)
        _commit_competitor(case.case_id, Claim(actor_id=r1.pk))

        transition = apply(stale, Claim(actor_id=r2.pk), now=timezone.now())
        assert CaseStore.commit(stale, transition, r2.pk) is None

        case.refresh_from_db()
        assert case.assigned_helpers == [r1.pk]
        assert case.version == 1
        assert TimelineEvent.objects.filter(case=case).count() == 2

    def test_taken_sequence_rolls_back_the_update(self, create_user, report_case):
        case = report_case()
        helper = create_user(user_type="volunteer")
        TimelineEvent.objects.create(
            case=case, sequence=1, event_type=TimelineEventType.ASSIGNED, details={},
        )

        state = CaseStore.load(case.case_id)
        transition = apply(state, Claim(actor_id=helper.pk), now=timezone.now())
        assert CaseStore.commit(state, transition, helper.pk) is None

        case.refresh_from_db()
        assert case.version == 0
        assert case.status == CaseStatus.OPEN

    def test_load_unknown_case_raises_not_found(self, db):
        with pytest.raises(NotFound):
            CaseStore.load(uuid.uuid4())


@pytest.mark.django_db
def test_compare_and_swap_refuses_to_set_version(report_case):
    case = report_case()
    with pytest.raises(ValueError):
        compare_and_swap(
            model_class=Case, pk=case.pk, expected_version=0, changes={"version": 7},
        )


def _assert_log_matches_case(case):
    """Helper set agrees with status and the timeline has no gaps."""
    case.refresh_from_db()
    assert is_consistent(case.status, case.assigned_helpers)
    assert len(set(case.assigned_helpers)) == len(case.assigned_helpers)
    sequences = list(
        TimelineEvent.objects.filter(case=case).values_list("sequence", flat=True)
    )
    assert sequences == list(range(case.version + 1))


@pytest.mark.django_db
class TestManyClaimants:

    def test_claims_read_at_same_version_end_co_assigned(self, create_user, report_case):
        case = report_case()
        helpers = [create_user(user_type="volunteer") for _ in range(5)]

        # Every claimant reads version 0 before anyone writes.
        snapshots = [CaseStore.load(case.case_id) for _ in helpers]
        now = timezone.now()
        results = [
            CaseStore.commit(state, apply(state, Claim(actor_id=h.pk), now=now), h.pk)
            for state, h in zip(snapshots, helpers)
        ]

        winners = [event for event in results if event is not None]
        assert len(winners) == 1
        assert winners[0].details["previous_status"] == CaseStatus.OPEN

        # The losers retry through the engine and join.
        losers = [h for h, event in zip(helpers, results) if event is None]
        retried = [CaseWorkflowService.claim(case.case_id, h) for h in losers]

        assert [e.details["previous_status"] for e in retried] == [CaseStatus.ASSIGNED] * 4
        assert sorted(e.sequence for e in winners + retried) == [1, 2, 3, 4, 5]

        case.refresh_from_db()
        assert case.status == CaseStatus.ASSIGNED
        assert sorted(case.assigned_helpers) == sorted(h.pk for h in helpers)
        opened = TimelineEvent.objects.filter(
            case=case,
            event_type=TimelineEventType.ASSIGNED,
            details__previous_status=CaseStatus.OPEN,
        )
        assert opened.count() == 1
        _assert_log_matches_case(case)

    def test_claimant_beaten_on_every_attempt_gives_up(
        self, monkeypatch, create_user, report_case,
    ):
        case = report_case()
        slow = create_user(user_type="volunteer")
        fast = [create_user(user_type="volunteer") for _ in range(3)]

        real_load = CaseStore.load
        loads = []

        def racing_load(case_id):
            state = real_load(case_id)
            loads.append(state.version)
            # A different claimant commits after each of our reads.
            rival = fast[len(loads) - 1]
            _commit_competitor(case_id, Claim(actor_id=rival.pk), load=real_load)
            return state

        monkeypatch.setattr(CaseStore, "load", staticmethod(racing_load))

        with pytest.raises(ConcurrentModification):
            CaseWorkflowService.execute(
                case.case_id,
                Claim(actor_id=slow.pk),
                policy=WorkflowPolicy(max_cas_retries=3),
            )

        assert loads == [0, 1, 2]

        case.refresh_from_db()
        assert case.version == 3
        assert case.assigned_helpers == [h.pk for h in fast]
        assert slow.pk not in case.assigned_helpers
        _assert_log_matches_case(case)


_WALK_NOTE = "Fed twice today and the limp is improving, still nervous around people."
_WALK_PHOTOS = ("https://cdn.example.com/walk-1.jpg", "https://cdn.example.com/walk-2.jpg")


def _random_command(rng, reporter, helpers):
    actor = rng.choice([reporter, *helpers])
    make = rng.choice([
        lambda: Claim(actor_id=actor.pk),
        lambda: BeginWork(actor_id=actor.pk),
        lambda: StatusUpdate(actor_id=actor.pk, note=_WALK_NOTE, photo_urls=_WALK_PHOTOS),
        lambda: Transfer(actor_id=actor.pk, reason="Needs a vet with a trailer"),
        lambda: Resolve(actor_id=actor.pk),
        lambda: ReporterApprove(actor_id=actor.pk),
        lambda: ReporterReject(actor_id=actor.pk, reason="Still limping badly"),
    ])
    return make()


@pytest.mark.django_db
@pytest.mark.parametrize("seed", [1, 7, 42, 2024])
def test_random_command_walk_keeps_case_consistent(seed, create_user, report_case):
    rng = random.Random(seed)
    reporter = create_user(user_type="reporter")
    helpers = [create_user(user_type="volunteer") for _ in range(3)]
    case = report_case(reporter=reporter)

    committed = 0
    for _ in range(60):
        command = _random_command(rng, reporter, helpers)
        case.refresh_from_db()
        before = case.version
        try:
            event = CaseWorkflowService.execute(case.case_id, command)
        except (IllegalTransition, CaseNotClaimable, ValidationFailed):
            case.refresh_from_db()
            assert case.version == before
        else:
            committed += 1
            assert event.sequence == before + 1
        _assert_log_matches_case(case)

    case.refresh_from_db()
    assert case.version == committed
