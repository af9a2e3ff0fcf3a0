"""
Core constants — **Single Source of Truth** for project-wide magic numbers.

Any business rule that references a numeric constant should import it
from here instead of hardcoding.  Deployments override the workflow
knobs through the ``CASE_WORKFLOW`` setting (see ``rescue/settings.py``);
these values are the defaults.
"""

# ── Optimistic concurrency ──────────────────────────────────────────
# How many load → check → compare-and-swap attempts a workflow command
# gets before the caller receives ``ConcurrentModification``.
MAX_CAS_RETRIES: int = 3

# ── Status updates ──────────────────────────────────────────────────
# A progress report from a helper must describe the animal's state in
# some detail and carry photographic evidence.
STATUS_UPDATE_MIN_NOTE_LENGTH: int = 50
STATUS_UPDATE_MIN_PHOTOS: int = 2

# ── Reminders ───────────────────────────────────────────────────────
# Helpers on an assigned / in-progress case are reminded when no
# transition has been recorded for this many hours.
REMINDER_INTERVAL_HOURS: int = 24

# ── Notifications ───────────────────────────────────────────────────
DEFAULT_CASE_NOTIFIER: str = "cases.notifications.CaseEventNotifier"
