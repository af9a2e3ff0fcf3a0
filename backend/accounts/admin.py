from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "phone_number", "first_name",
                    "last_name", "user_type", "is_active")
    search_fields = ("username", "email", "phone_number", "organization")
    list_filter = ("is_active", "is_staff", "user_type")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Extra Info", {"fields": ("phone_number", "user_type", "organization")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Extra Info", {"fields": ("email", "phone_number", "first_name",
                                   "last_name", "user_type", "organization")}),
    )
