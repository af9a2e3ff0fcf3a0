"""
Cases app models.

Covers the rescue-case lifecycle — from the citizen's report, through
helpers claiming and working on the case, to the reporter approving the
resolution. Also holds the append-only timeline that records every step
and the chat messages exchanged on a case.

Workflow fields on ``Case`` (``status``, ``assigned_helpers``,
``resolved_helpers``, ``reporter_approval``, ``version``,
``last_status_update``, ``resolved_at``) are written exclusively by
``cases.store.CaseStore`` on behalf of the workflow engine.
"""

import uuid

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class CaseStatus(models.TextChoices):
    """Lifecycle states of a rescue case."""

    OPEN = "open", "Open"
    ASSIGNED = "assigned", "Assigned"
    IN_PROGRESS = "in_progress", "In Progress"
    RESOLVED = "resolved", "Resolved"
    CLOSED = "closed", "Closed"


#: Statuses in which the case must have at least one assigned helper.
ACTIVE_STATUSES = frozenset({CaseStatus.ASSIGNED, CaseStatus.IN_PROGRESS})


class ReporterApproval(models.TextChoices):
    """Reporter's verdict on a resolution.  Null until the first resolve."""

    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class AnimalType(models.TextChoices):
    DOG = "dog", "Dog"
    CAT = "cat", "Cat"
    BIRD = "bird", "Bird"
    CATTLE = "cattle", "Cattle"
    WILDLIFE = "wildlife", "Wildlife"
    OTHER = "other", "Other"


class AnimalCondition(models.TextChoices):
    """Condition of the animal as observed by the reporter."""

    INJURED = "injured", "Injured"
    SICK = "sick", "Sick"
    TRAPPED = "trapped", "Trapped"
    ABANDONED = "abandoned", "Abandoned"
    AGGRESSIVE = "aggressive", "Aggressive"
    OTHER = "other", "Other"


class UrgencyLevel(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


class ProgressCondition(models.TextChoices):
    """Condition of the animal as reported by a helper in a status update."""

    IMPROVING = "improving", "Improving"
    STABLE = "stable", "Stable"
    DETERIORATING = "deteriorating", "Deteriorating"
    CRITICAL = "critical", "Critical"
    RECOVERED = "recovered", "Recovered"


class TimelineEventType(models.TextChoices):
    CREATED = "created", "Created"
    ASSIGNED = "assigned", "Assigned"
    STATUS_UPDATED = "status_updated", "Status Updated"
    TRANSFERRED = "transferred", "Transferred"
    RESOLVED = "resolved", "Resolved"
    REPORTER_APPROVED = "reporter_approved", "Reporter Approved"
    REPORTER_REJECTED = "reporter_rejected", "Reporter Rejected"


class MessageType(models.TextChoices):
    TEXT = "text", "Text"
    STATUS_UPDATE = "status_update", "Status Update"
    SYSTEM = "system", "System"
    IMAGE = "image", "Image"


class MessagePriority(models.TextChoices):
    NORMAL = "normal", "Normal"
    URGENT = "urgent", "Urgent"


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Case(TimeStampedModel):
    """
    A reported animal in need of rescue.

    * ``case_id`` is the stable external identifier used in URLs.
    * ``assigned_helpers`` is an ordered list of user PKs without
      duplicates.  It is non-empty exactly when the status is
      ``assigned`` or ``in_progress``.
    * ``version`` starts at 0 and grows by one with every committed
      transition; it is the optimistic-concurrency token.
    * Cases are never deleted; ``closed`` is terminal.
    """

    case_id = models.UUIDField(
        default=uuid.uuid4,
        unique=True,
        editable=False,
        verbose_name="Case ID",
    )
    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="reported_cases",
        verbose_name="Reporter",
    )

    # ── Workflow state ──────────────────────────────────────────────
    status = models.CharField(
        max_length=20,
        choices=CaseStatus.choices,
        default=CaseStatus.OPEN,
        verbose_name="Current Status",
        db_index=True,
    )
    assigned_helpers = models.JSONField(
        default=list,
        blank=True,
        verbose_name="Assigned Helpers",
        help_text="Ordered list of user IDs currently working on the case.",
    )
    resolved_helpers = models.JSONField(
        default=list,
        blank=True,
        verbose_name="Helpers At Resolution",
        help_text="Helpers restored if the reporter rejects the resolution.",
    )
    reporter_approval = models.CharField(
        max_length=10,
        choices=ReporterApproval.choices,
        null=True,
        blank=True,
        verbose_name="Reporter Approval",
    )
    version = models.PositiveIntegerField(
        default=0,
        verbose_name="Version",
    )
    last_status_update = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Last Status Update",
        db_index=True,
    )
    resolved_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Resolved At",
    )

    # ── Descriptive payload ─────────────────────────────────────────
    animal_type = models.CharField(
        max_length=20,
        choices=AnimalType.choices,
        verbose_name="Animal Type",
    )
    animal_condition = models.CharField(
        max_length=20,
        choices=AnimalCondition.choices,
        verbose_name="Animal Condition",
    )
    urgency_level = models.CharField(
        max_length=10,
        choices=UrgencyLevel.choices,
        default=UrgencyLevel.MEDIUM,
        verbose_name="Urgency",
        db_index=True,
    )
    description = models.TextField(
        verbose_name="Description",
    )
    address = models.CharField(
        max_length=500,
        verbose_name="Address",
    )
    landmarks = models.CharField(
        max_length=500,
        blank=True,
        default="",
        verbose_name="Landmarks",
    )
    latitude = models.DecimalField(
        max_digits=9,
        decimal_places=6,
        null=True,
        blank=True,
    )
    longitude = models.DecimalField(
        max_digits=9,
        decimal_places=6,
        null=True,
        blank=True,
    )
    is_approximate = models.BooleanField(
        default=True,
        verbose_name="Approximate Location",
    )
    photos = models.JSONField(
        default=list,
        blank=True,
        verbose_name="Photo URLs",
    )
    contact_phone = models.CharField(
        max_length=15,
        verbose_name="Contact Phone",
    )
    contact_email = models.EmailField(
        blank=True,
        default="",
        verbose_name="Contact Email",
    )

    class Meta:
        verbose_name = "Case"
        verbose_name_plural = "Cases"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "urgency_level"], name="case_status_urgency_idx"),
            models.Index(fields=["reporter", "created_at"], name="case_reporter_created_idx"),
        ]

    def __str__(self):
        return f"Case {self.case_id} ({self.status})"

    @property
    def short_ref(self) -> str:
        """First block of the UUID, used in notification texts."""
        return str(self.case_id).split("-")[0].upper()


class TimelineEvent(models.Model):
    """
    Immutable audit trail entry for a case.

    Sequences are contiguous per case starting at 0 (the ``created``
    event).  The sequence of an event equals the case version produced by
    the transition that emitted it.
    """

    case = models.ForeignKey(
        Case,
        on_delete=models.PROTECT,
        related_name="timeline",
        verbose_name="Case",
    )
    sequence = models.PositiveIntegerField(
        verbose_name="Sequence",
    )
    event_type = models.CharField(
        max_length=30,
        choices=TimelineEventType.choices,
        verbose_name="Event Type",
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="timeline_events",
        verbose_name="Actor",
    )
    details = models.JSONField(
        default=dict,
        blank=True,
        verbose_name="Details",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Timestamp",
    )

    class Meta:
        verbose_name = "Timeline Event"
        verbose_name_plural = "Timeline Events"
        ordering = ["case", "sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["case", "sequence"],
                name="unique_case_timeline_sequence",
            ),
        ]

    def __str__(self):
        return f"Case #{self.case_id} [{self.sequence}] {self.event_type}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Timeline events are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Timeline events are append-only.")


class CaseMessage(TimeStampedModel):
    """
    Chat message on a case between the reporter and the helpers.

    ``system`` messages have no sender; they are posted after commit by
    the case notifier when helpers join or the case is transferred.
    ``read_by`` never contains the sender.
    """

    case = models.ForeignKey(
        Case,
        on_delete=models.CASCADE,
        related_name="messages",
        verbose_name="Case",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="case_messages",
        verbose_name="Sender",
    )
    content = models.TextField(
        max_length=2000,
        verbose_name="Content",
    )
    message_type = models.CharField(
        max_length=20,
        choices=MessageType.choices,
        default=MessageType.TEXT,
        verbose_name="Message Type",
    )
    priority = models.CharField(
        max_length=10,
        choices=MessagePriority.choices,
        default=MessagePriority.NORMAL,
        verbose_name="Priority",
    )
    image_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        verbose_name="Image URL",
    )
    read_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="read_case_messages",
        verbose_name="Read By",
    )

    class Meta:
        verbose_name = "Case Message"
        verbose_name_plural = "Case Messages"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["case", "created_at"], name="message_case_created_idx"),
            models.Index(fields=["case", "priority"], name="message_case_priority_idx"),
        ]

    def __str__(self):
        return f"Message on case #{self.case_id} ({self.message_type})"
