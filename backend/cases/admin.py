from django.contrib import admin

from .models import Case, CaseMessage, TimelineEvent

# Written only by the workflow engine.
_WORKFLOW_FIELDS = ("case_id", "status", "assigned_helpers", "resolved_helpers",
                    "reporter_approval", "version", "last_status_update",
                    "resolved_at", "created_at", "updated_at")


class TimelineEventInline(admin.TabularInline):
    model = TimelineEvent
    extra = 0
    can_delete = False
    readonly_fields = ("sequence", "event_type", "actor", "details",
                       "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Case)
class CaseAdmin(admin.ModelAdmin):
    list_display = ("case_id", "status", "animal_type", "urgency_level",
                    "reporter", "version", "created_at")
    list_filter = ("status", "urgency_level", "animal_type")
    search_fields = ("description", "address", "landmarks")
    readonly_fields = _WORKFLOW_FIELDS
    inlines = [TimelineEventInline]

    def has_add_permission(self, request):
        # Cases are opened through the report endpoint so they get their
        # "created" timeline event.
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        # Write only the edited intake columns.  A full save would put back
        # the workflow fields as they were when the form was loaded.
        fields = [f for f in form.changed_data if f not in _WORKFLOW_FIELDS]
        if fields:
            obj.save(update_fields=fields)


@admin.register(TimelineEvent)
class TimelineEventAdmin(admin.ModelAdmin):
    list_display = ("case", "sequence", "event_type", "actor", "created_at")
    list_filter = ("event_type",)
    readonly_fields = ("case", "sequence", "event_type", "actor", "details",
                       "created_at")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CaseMessage)
class CaseMessageAdmin(admin.ModelAdmin):
    list_display = ("case", "sender", "message_type", "priority", "created_at")
    list_filter = ("message_type", "priority")
    search_fields = ("content",)
    raw_id_fields = ("case", "sender")
    filter_horizontal = ("read_by",)
