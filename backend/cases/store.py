"""
Case Store — persistence for the workflow engine.

``load`` turns a ``Case`` row into a ``CaseState`` snapshot; ``commit``
writes a ``Transition`` back with a version-guarded conditional update
and appends the matching ``TimelineEvent`` in the same transaction.
A lost race is reported by returning ``None`` so the engine can reload
and retry.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.domain.exceptions import NotFound
from core.domain.transactions import compare_and_swap

from .models import Case, TimelineEvent
from .workflow import CaseState, Transition

logger = logging.getLogger(__name__)


class CaseStore:
    """Reads and version-guarded writes of ``Case`` workflow state."""

    @staticmethod
    def load(case_id: Any) -> CaseState:
        """
        Return the current workflow state of ``case_id``.

        Raises
        ------
        NotFound
            Unknown ``case_id``.
        """
        row = (
            Case.objects
            .filter(case_id=case_id)
            .values(
                "pk", "case_id", "status", "assigned_helpers", "resolved_helpers",
                "reporter_id", "reporter_approval", "urgency_level", "version",
            )
            .first()
        )
        if row is None:
            raise NotFound(f"Case {case_id} does not exist.")
        return CaseState(
            pk=row["pk"],
            case_id=row["case_id"],
            status=row["status"],
            assigned_helpers=tuple(row["assigned_helpers"] or ()),
            resolved_helpers=tuple(row["resolved_helpers"] or ()),
            reporter_id=row["reporter_id"],
            reporter_approval=row["reporter_approval"],
            urgency_level=row["urgency_level"],
            version=row["version"],
        )

    @staticmethod
    def commit(
        state: CaseState,
        transition: Transition,
        actor_id: int | None,
    ) -> TimelineEvent | None:
        """
        Persist ``transition`` if the case is still at ``state.version``.

        Parameters
        ----------
        state : CaseState
            The snapshot the transition was computed from.  Its
            ``version`` is the expected version of the write.
        transition : Transition
            Field changes plus the timeline event to append.
        actor_id : int | None
            User PK recorded on the timeline event.

        Returns
        -------
        TimelineEvent | None
            The appended event (``sequence == state.version + 1``), or
            ``None`` when another writer committed first.  Nothing is
            written in that case.
        """
        now = timezone.now()
        changes = dict(transition.changes)
        changes["last_status_update"] = now
        changes["updated_at"] = now

        try:
            with transaction.atomic():
                if not compare_and_swap(
                    model_class=Case,
                    pk=state.pk,
                    expected_version=state.version,
                    changes=changes,
                ):
                    return None
                return TimelineEvent.objects.create(
                    case_id=state.pk,
                    sequence=state.version + 1,
                    event_type=transition.event_type,
                    actor_id=actor_id,
                    details=transition.details,
                )
        except IntegrityError:
            # The (case, sequence) constraint caught a writer that slipped
            # past the version check.
            logger.warning(
                "Timeline sequence %s already taken for case %s",
                state.version + 1,
                state.case_id,
            )
            return None
