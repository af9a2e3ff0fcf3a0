import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Case",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("case_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True, verbose_name="Case ID")),
                ("status", models.CharField(choices=[("open", "Open"), ("assigned", "Assigned"), ("in_progress", "In Progress"), ("resolved", "Resolved"), ("closed", "Closed")], db_index=True, default="open", max_length=20, verbose_name="Current Status")),
                ("assigned_helpers", models.JSONField(blank=True, default=list, help_text="Ordered list of user IDs currently working on the case.", verbose_name="Assigned Helpers")),
                ("resolved_helpers", models.JSONField(blank=True, default=list, help_text="Helpers restored if the reporter rejects the resolution.", verbose_name="Helpers At Resolution")),
                ("reporter_approval", models.CharField(blank=True, choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")], max_length=10, null=True, verbose_name="Reporter Approval")),
                ("version", models.PositiveIntegerField(default=0, verbose_name="Version")),
                ("last_status_update", models.DateTimeField(blank=True, db_index=True, null=True, verbose_name="Last Status Update")),
                ("resolved_at", models.DateTimeField(blank=True, null=True, verbose_name="Resolved At")),
                ("animal_type", models.CharField(choices=[("dog", "Dog"), ("cat", "Cat"), ("bird", "Bird"), ("cattle", "Cattle"), ("wildlife", "Wildlife"), ("other", "Other")], max_length=20, verbose_name="Animal Type")),
                ("animal_condition", models.CharField(choices=[("injured", "Injured"), ("sick", "Sick"), ("trapped", "Trapped"), ("abandoned", "Abandoned"), ("aggressive", "Aggressive"), ("other", "Other")], max_length=20, verbose_name="Animal Condition")),
                ("urgency_level", models.CharField(choices=[("low", "Low"), ("medium", "Medium"), ("high", "High"), ("critical", "Critical")], db_index=True, default="medium", max_length=10, verbose_name="Urgency")),
                ("description", models.TextField(verbose_name="Description")),
                ("address", models.CharField(max_length=500, verbose_name="Address")),
                ("landmarks", models.CharField(blank=True, default="", max_length=500, verbose_name="Landmarks")),
                ("latitude", models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ("longitude", models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ("is_approximate", models.BooleanField(default=True, verbose_name="Approximate Location")),
                ("photos", models.JSONField(blank=True, default=list, verbose_name="Photo URLs")),
                ("contact_phone", models.CharField(max_length=15, verbose_name="Contact Phone")),
                ("contact_email", models.EmailField(blank=True, default="", max_length=254, verbose_name="Contact Email")),
                ("reporter", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="reported_cases", to=settings.AUTH_USER_MODEL, verbose_name="Reporter")),
            ],
            options={
                "verbose_name": "Case",
                "verbose_name_plural": "Cases",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "urgency_level"], name="case_status_urgency_idx"),
                    models.Index(fields=["reporter", "created_at"], name="case_reporter_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TimelineEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sequence", models.PositiveIntegerField(verbose_name="Sequence")),
                ("event_type", models.CharField(choices=[("created", "Created"), ("assigned", "Assigned"), ("status_updated", "Status Updated"), ("transferred", "Transferred"), ("resolved", "Resolved"), ("reporter_approved", "Reporter Approved"), ("reporter_rejected", "Reporter Rejected")], max_length=30, verbose_name="Event Type")),
                ("details", models.JSONField(blank=True, default=dict, verbose_name="Details")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Timestamp")),
                ("actor", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="timeline_events", to=settings.AUTH_USER_MODEL, verbose_name="Actor")),
                ("case", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="timeline", to="cases.case", verbose_name="Case")),
            ],
            options={
                "verbose_name": "Timeline Event",
                "verbose_name_plural": "Timeline Events",
                "ordering": ["case", "sequence"],
                "constraints": [
                    models.UniqueConstraint(fields=("case", "sequence"), name="unique_case_timeline_sequence"),
                ],
            },
        ),
    ]
