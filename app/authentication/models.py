"""
Authentication models.

This module defines the user directory record consumed by the messaging core:
- User: email-based account carrying the display profile (name, college,
  avatar) and durable presence fields (online_status, last_seen).

Related files:
    - managers.py: Custom user manager for email-based creation
    - chat.services.PresenceService: the only writer of presence fields

Security:
    - User passwords hashed with Django's PBKDF2
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        first_name / last_name: Display name
        user_type: student, alumni or admin
        college: College name; users of the same college share a socket room
        profile_image_url: Avatar url (uploads are handled elsewhere)
        online_status: Last presence state written by the realtime gateway
        last_seen: When the presence state last changed or was refreshed

    Usage:
        user = User.objects.create_user(
            email='ada@college.edu',
            password='securepassword',
            first_name='Ada',
            college='State University',
        )
    """

    class UserType(models.TextChoices):
        STUDENT = "student", "Student"
        ALUMNI = "alumni", "Alumni"
        ADMIN = "admin", "Admin"

    class OnlineStatus(models.TextChoices):
        ONLINE = "online", "Online"
        AWAY = "away", "Away"
        OFFLINE = "offline", "Offline"

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    first_name = models.CharField(max_length=50, blank=True)
    last_name = models.CharField(max_length=50, blank=True)
    user_type = models.CharField(
        max_length=10,
        choices=UserType.choices,
        default=UserType.STUDENT,
    )
    college = models.CharField(
        max_length=200,
        blank=True,
        db_index=True,
        help_text="College name, empty when unknown",
    )
    profile_image_url = models.URLField(max_length=500, blank=True)

    # Presence
    online_status = models.CharField(
        max_length=10,
        choices=OnlineStatus.choices,
        default=OnlineStatus.OFFLINE,
        db_index=True,
    )
    last_seen = models.DateTimeField(null=True, blank=True)

    # Account status flags
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def get_full_name(self):
        """Return the display name, falling back to the email address."""
        return self.full_name or self.email

    def get_short_name(self):
        return self.first_name or self.email.split("@")[0]
