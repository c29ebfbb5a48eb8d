"""
User manager for email-based accounts.

Accounts are keyed by email. The college name is normalized on creation
because it also names the user's realtime college room.
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    """
    Manager for the User model.

    Usage:
        user = User.objects.create_user(
            email='ada@college.edu',
            password='securepassword',
            college='State University',
        )
        admin = User.objects.create_superuser(
            email='staff@college.edu',
            password='adminpassword',
        )
    """

    @staticmethod
    def normalize_college(college):
        """Collapse runs of whitespace so equal colleges share one room."""
        return " ".join((college or "").split())

    def create_user(self, email, password=None, **extra_fields):
        """
        Create a directory user.

        Accounts created without a password (seeded alumni records) get an
        unusable password and can only authenticate after a reset.

        Raises:
            ValueError: If email is not provided
        """
        if not email:
            raise ValueError("The Email field must be set")

        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        extra_fields["college"] = self.normalize_college(extra_fields.get("college"))

        user = self.model(email=self.normalize_email(email), **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("user_type", self.model.UserType.ADMIN)

        for flag in ("is_staff", "is_superuser"):
            if extra_fields.get(flag) is not True:
                raise ValueError(f"Superuser must have {flag}=True.")

        return self.create_user(email, password, **extra_fields)
