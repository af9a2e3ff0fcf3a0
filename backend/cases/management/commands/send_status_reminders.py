"""
Management command: send_status_reminders
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Reminds the helpers of ``assigned`` / ``in_progress`` cases that have
had no transition for longer than the reminder interval.

A case is reminded at most once per stale period: if a
``case_status_reminder`` notification for it was already created after
its ``last_status_update``, it is skipped.  Safe to run from cron as
often as you like.

Usage::

    python manage.py send_status_reminders
    python manage.py send_status_reminders --hours 12 --dry-run
"""

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.contrib.contenttypes.models import ContentType
from django.core.management.base import BaseCommand
from django.utils import timezone

from cases.models import ACTIVE_STATUSES, Case
from cases.workflow import WorkflowPolicy
from core.domain.notifications import NotificationService
from core.models import Notification

REMINDER_EVENT_TYPE = "case_status_reminder"


class Command(BaseCommand):
    help = (
        "Notifies helpers of active cases without a recent status update.  "
        "Idempotent within a stale period."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--hours",
            type=int,
            default=None,
            help="Hours without an update before reminding "
                 "(default: CASE_WORKFLOW['REMINDER_INTERVAL_HOURS']).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the cases that would be reminded without notifying anyone.",
        )

    def handle(self, *args, **options):
        hours = options["hours"]
        if hours is None:
            hours = WorkflowPolicy.from_settings().reminder_interval_hours
        dry_run = options["dry_run"]
        cutoff = timezone.now() - timedelta(hours=hours)

        self.stdout.write(self.style.MIGRATE_HEADING(
            f"\nStatus reminders — cases idle for more than {hours}h"
            + (" (dry run)" if dry_run else "")
        ))

        case_type = ContentType.objects.get_for_model(Case)
        stale_cases = (
            Case.objects
            .filter(status__in=ACTIVE_STATUSES, last_status_update__lt=cutoff)
            .order_by("last_status_update")
        )
        User = get_user_model()

        reminded = 0
        skipped = 0
        for case in stale_cases:
            already_reminded = Notification.objects.filter(
                event_type=REMINDER_EVENT_TYPE,
                content_type=case_type,
                object_id=case.pk,
                created_at__gte=case.last_status_update,
            ).exists()
            if already_reminded:
                skipped += 1
                continue

            helpers = list(User.objects.filter(pk__in=case.assigned_helpers or []))
            if not dry_run:
                NotificationService.create(
                    actor=None,
                    recipients=helpers,
                    event_type=REMINDER_EVENT_TYPE,
                    payload={"case_ref": case.short_ref, "hours": hours},
                    related_object=case,
                )
            reminded += 1
            self.stdout.write(
                f"  •  {case.case_id} ({case.status}) → {len(helpers)} helper(s)"
            )

        verb = "Would remind" if dry_run else "Reminded"
        self.stdout.write(self.style.SUCCESS(
            f"  {verb} {reminded} case(s); {skipped} already reminded.\n"
        ))
