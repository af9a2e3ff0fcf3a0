"""
Accounts app models.

Defines a custom User model that extends Django's ``AbstractUser``.
Every user can report a case; volunteers and NGOs are the people who
usually claim and work on them.  Login is supported via username,
email or phone number together with the password.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models


class UserType(models.TextChoices):
    """Kind of account, shown to other users next to the name."""

    REPORTER = "reporter", "Reporter"
    VOLUNTEER = "volunteer", "Volunteer"
    NGO = "ngo", "NGO"
    ADMIN = "admin", "Administrator"


class User(AbstractUser):
    """
    Custom user model for the rescue platform.

    Registration requires at minimum: username, password, email,
    phone_number, first_name and last_name.
    """

    email = models.EmailField(
        unique=True,
        verbose_name="Email Address",
    )
    phone_number = models.CharField(
        max_length=15,
        unique=True,
        verbose_name="Phone Number",
        db_index=True,
    )
    user_type = models.CharField(
        max_length=20,
        choices=UserType.choices,
        default=UserType.REPORTER,
        verbose_name="User Type",
    )
    organization = models.CharField(
        max_length=200,
        blank=True,
        default="",
        verbose_name="Organization",
        help_text="NGO or shelter the user works for, if any.",
    )

    # Fields required when creating a superuser via CLI
    REQUIRED_FIELDS = ["email", "phone_number"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return self.get_full_name() or self.username

    @property
    def display_name(self) -> str:
        """Full name when set, username otherwise."""
        return self.get_full_name() or self.username
