"""
Django admin configuration for the user directory.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from authentication.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin for email-based users with profile and presence fields."""

    list_display = (
        "email",
        "full_name",
        "user_type",
        "college",
        "online_status",
        "last_seen",
        "is_active",
    )
    list_filter = ("user_type", "online_status", "is_active", "is_staff")
    search_fields = ("email", "first_name", "last_name", "college")
    ordering = ("-date_joined",)

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        (
            "Profile",
            {
                "fields": (
                    "first_name",
                    "last_name",
                    "user_type",
                    "college",
                    "profile_image_url",
                )
            },
        ),
        ("Presence", {"fields": ("online_status", "last_seen")}),
        (
            "Status",
            {"fields": ("is_active", "is_staff", "is_superuser")},
        ),
        ("Permissions", {"fields": ("groups", "user_permissions")}),
        ("Important dates", {"fields": ("date_joined", "last_login")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "password1", "password2"),
            },
        ),
    )

    readonly_fields = ("date_joined", "last_login", "last_seen")
