import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("cases", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CaseMessage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("content", models.TextField(max_length=2000, verbose_name="Content")),
                ("message_type", models.CharField(choices=[("text", "Text"), ("status_update", "Status Update"), ("system", "System"), ("image", "Image")], default="text", max_length=20, verbose_name="Message Type")),
                ("priority", models.CharField(choices=[("normal", "Normal"), ("urgent", "Urgent")], default="normal", max_length=10, verbose_name="Priority")),
                ("image_url", models.URLField(blank=True, default="", max_length=500, verbose_name="Image URL")),
                ("case", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="messages", to="cases.case", verbose_name="Case")),
                ("sender", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="case_messages", to=settings.AUTH_USER_MODEL, verbose_name="Sender")),
                ("read_by", models.ManyToManyField(blank=True, related_name="read_case_messages", to=settings.AUTH_USER_MODEL, verbose_name="Read By")),
            ],
            options={
                "verbose_name": "Case Message",
                "verbose_name_plural": "Case Messages",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["case", "created_at"], name="message_case_created_idx"),
                    models.Index(fields=["case", "priority"], name="message_case_priority_idx"),
                ],
            },
        ),
    ]
