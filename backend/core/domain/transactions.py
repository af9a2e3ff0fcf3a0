"""
core.domain.transactions — Helpers for safe state transitions.

Provides the optimistic-concurrency primitive every workflow write goes
through.  Instead of taking a row lock up front (``select_for_update``),
a write is a *conditional update*: it only lands if the row still
carries the version the caller read.  Correctness therefore holds across
several worker processes without any in-process locking.

Design goals
------------
* One place that knows how a version-guarded write looks in SQL:
  ``UPDATE ... SET ..., version = version + 1 WHERE pk = %s AND version = %s``.
* Callers learn about a lost race through the return value, not an
  exception, so a retry loop can reload and re-run the command.
* Keep the helper **generic** — it accepts any Django model class with
  an integer version column.

Usage::

    from django.db import transaction
    from core.domain.transactions import compare_and_swap

    with transaction.atomic():
        if not compare_and_swap(
            model_class=Case,
            pk=case.pk,
            expected_version=state.version,
            changes={"status": "assigned"},
        ):
            ...  # somebody else committed first; reload and retry
        ...  # other writes that must commit together with the update
"""

from __future__ import annotations

from typing import Any, Mapping

from django.db import models, transaction
from django.db.models import F


def compare_and_swap(
    *,
    model_class: type[models.Model],
    pk: Any,
    expected_version: int,
    changes: Mapping[str, Any],
    version_field: str = "version",
) -> bool:
    """
    Apply ``changes`` to the row ``pk`` only if its version is unchanged.

    The version column is incremented by exactly one as part of the same
    statement.  Must be called inside ``transaction.atomic()`` when other
    writes have to commit (or roll back) together with it.

    Args:
        model_class:      The Django model class.
        pk:               Primary key of the row to update.
        expected_version: Version observed when the row was loaded.
        changes:          Field name → new value.  Must not contain
                          ``version_field``.
        version_field:    Name of the integer version column.

    Returns:
        ``True`` when the row was updated, ``False`` when the version no
        longer matched (or the row is gone).
    """
    if version_field in changes:
        raise ValueError(f"'{version_field}' is managed by compare_and_swap.")

    updated = (
        model_class.objects
        .filter(pk=pk, **{version_field: expected_version})
        .update(**changes, **{version_field: F(version_field) + 1})
    )
    return updated == 1


def on_commit_safe(fn, *, using: str | None = None) -> None:
    """
    Run ``fn`` after the surrounding transaction commits.

    Outside of an atomic block Django runs the callback immediately;
    inside one it is deferred until the outermost block commits and is
    dropped on rollback.  ``robust=True`` keeps one failing callback from
    preventing the others.
    """
    transaction.on_commit(fn, using=using, robust=True)
