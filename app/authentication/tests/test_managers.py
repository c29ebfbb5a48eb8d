"""
Tests for UserManager.

The UserManager provides:
- create_user(): Creates regular users with optional password
- create_superuser(): Creates admin users with elevated privileges

Tests follow the Given-When-Then pattern.
"""

import pytest

from authentication.models import User


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        """
        Given valid email and password
        When create_user is called
        Then a user is created with those credentials
        """
        user = User.objects.create_user(
            email="mgr_create_user@example.com", password="SecurePass123!"
        )

        assert user.pk is not None
        assert user.email == "mgr_create_user@example.com"
        assert user.check_password("SecurePass123!") is True

    def test_normalizes_email_domain_to_lowercase(self, db):
        """
        Given an email with uppercase characters in domain
        When create_user is called
        Then the domain portion is normalized to lowercase
        """
        user = User.objects.create_user(
            email="Test.User@EXAMPLE.COM", password="TestPass123!"
        )

        assert user.email == "Test.User@example.com"

    def test_raises_valueerror_when_email_is_empty(self, db):
        """
        Given an empty email
        When create_user is called
        Then a ValueError is raised with descriptive message
        """
        with pytest.raises(ValueError) as exc_info:
            User.objects.create_user(email="", password="TestPass123!")

        assert "Email field must be set" in str(exc_info.value)

    def test_creates_user_without_password(self, db):
        """
        Given no password
        When create_user is called
        Then the user gets an unusable password
        """
        user = User.objects.create_user(email="nopass@example.com")

        assert user.has_usable_password() is False

    def test_keeps_profile_fields(self, db):
        """
        Given display profile fields in extra_fields
        When create_user is called
        Then they are stored on the user record
        """
        user = User.objects.create_user(
            email="ada@example.com",
            password="TestPass123!",
            first_name="Ada",
            last_name="Lovelace",
            user_type=User.UserType.ALUMNI,
            college="State University",
        )

        assert user.get_full_name() == "Ada Lovelace"
        assert user.user_type == "alumni"
        assert user.college == "State University"

    def test_sets_default_flags_and_presence(self, db):
        """
        Given a regular user
        When create_user is called
        Then the user is active, not staff, and starts offline with no last_seen
        """
        user = User.objects.create_user(email="flags@example.com", password="x")

        assert user.is_active is True
        assert user.is_staff is False
        assert user.is_superuser is False
        assert user.online_status == User.OnlineStatus.OFFLINE
        assert user.last_seen is None


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_creates_superuser_with_correct_flags(self, db):
        superuser = User.objects.create_superuser(
            email="admin@example.com", password="AdminPass123!"
        )

        assert superuser.is_staff is True
        assert superuser.is_superuser is True
        assert superuser.user_type == User.UserType.ADMIN

    def test_raises_valueerror_when_is_staff_is_false(self, db):
        with pytest.raises(ValueError, match="is_staff=True"):
            User.objects.create_superuser(
                email="bad@example.com", password="x", is_staff=False
            )

    def test_raises_valueerror_when_is_superuser_is_false(self, db):
        with pytest.raises(ValueError, match="is_superuser=True"):
            User.objects.create_superuser(
                email="bad2@example.com", password="x", is_superuser=False
            )


class TestUserDisplayName:
    """Tests for User display helpers."""

    def test_full_name_falls_back_to_email(self, db):
        """
        Given a user with no first or last name
        When get_full_name is called
        Then the email is returned

        Why it matters: participant lists always need a printable label.
        """
        user = User.objects.create_user(email="anon@example.com", password="x")

        assert user.get_full_name() == "anon@example.com"
        assert user.get_short_name() == "anon"


class TestCollegeNormalization:
    """Tests for college name normalization on create_user."""

    def test_collapses_whitespace(self, db):
        user = User.objects.create_user(
            email="spaces@example.com", college="  State   University "
        )

        assert user.college == "State University"

    def test_missing_college_is_empty(self, db):
        user = User.objects.create_user(email="nocollege@example.com")

        assert user.college == ""
