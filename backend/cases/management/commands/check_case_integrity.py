"""
Management command: check_case_integrity
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Read-only audit of the workflow data.  For every case it verifies that

* the helper set agrees with the status (non-empty exactly for
  ``assigned`` / ``in_progress``) and holds no duplicates,
* the timeline starts with a ``created`` event at sequence 0 and is
  contiguous,
* the last timeline sequence equals the case ``version``.

Nothing is ever repaired: fixes must go through the workflow engine so
the timeline keeps telling the truth.

Usage::

    python manage.py check_case_integrity
    python manage.py check_case_integrity --fail-on-violation   # non-zero exit for CI / cron
"""

from collections import defaultdict

from django.core.management.base import BaseCommand, CommandError

from cases.models import Case, TimelineEvent, TimelineEventType
from cases.workflow import is_consistent


class Command(BaseCommand):
    help = (
        "Reports cases whose status, helpers, version or timeline break the "
        "workflow invariants.  Never writes to the database."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--fail-on-violation",
            action="store_true",
            help="Exit with an error when at least one violation is found.",
        )

    def handle(self, *args, **options):
        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n══════════════════════════════════════════"
            "\n  Case Integrity Check"
            "\n══════════════════════════════════════════\n"
        ))

        timelines: dict[int, list[tuple[int, str]]] = defaultdict(list)
        for case_pk, sequence, event_type in (
            TimelineEvent.objects
            .order_by("case_id", "sequence")
            .values_list("case_id", "sequence", "event_type")
        ):
            timelines[case_pk].append((sequence, event_type))

        checked = 0
        violations = 0
        cases = Case.objects.order_by("created_at").values_list(
            "pk", "case_id", "status", "assigned_helpers", "version",
        )
        for pk, case_id, status, helpers, version in cases.iterator():
            checked += 1
            problems = self._check_case(status, helpers or [], version, timelines.get(pk, []))
            for problem in problems:
                violations += 1
                self.stdout.write(self.style.WARNING(f"  ⚠  {case_id}: {problem}"))

        # ── Summary ─────────────────────────────────────────────────
        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n──────────────────────────────────────────"
        ))
        summary = f"  Checked {checked} case(s), found {violations} violation(s)."
        if violations:
            self.stdout.write(self.style.ERROR(summary + "\n"))
            if options["fail_on_violation"]:
                raise CommandError(f"{violations} integrity violation(s) found.")
        else:
            self.stdout.write(self.style.SUCCESS(summary + "\n"))

    @staticmethod
    def _check_case(status, helpers, version, events) -> list[str]:
        problems = []

        if not is_consistent(status, helpers):
            problems.append(
                f"status '{status}' does not match {len(helpers)} assigned helper(s)"
            )
        if len(set(helpers)) != len(helpers):
            problems.append("assigned helpers contain duplicates")

        if not events:
            problems.append("timeline is empty")
            return problems

        first_sequence, first_type = events[0]
        if first_sequence != 0 or first_type != TimelineEventType.CREATED:
            problems.append("timeline does not start with a 'created' event at sequence 0")

        sequences = [sequence for sequence, _ in events]
        if sequences != list(range(sequences[0], sequences[0] + len(sequences))):
            problems.append(f"timeline sequences are not contiguous: {sequences}")

        if sequences[-1] != version:
            problems.append(
                f"last timeline sequence {sequences[-1]} does not match version {version}"
            )
        return problems
