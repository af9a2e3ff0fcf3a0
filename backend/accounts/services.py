"""
Accounts Service Layer.

Business logic for the ``accounts`` app.  Views must remain *thin*:
they validate input through serializers, call a service method, and
return the result wrapped in a DRF ``Response``.

Architecture
------------
- ``UserRegistrationService``  — new-user creation flow.
- ``CurrentUserService``       — "Me" endpoint helpers and password change.
"""

from __future__ import annotations

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from core.domain.exceptions import Conflict, ValidationFailed

User = get_user_model()
logger = logging.getLogger(__name__)


class UserRegistrationService:
    """Encapsulates the user registration flow."""

    @staticmethod
    def register_user(validated_data: dict[str, Any]) -> User:
        """
        Create a new user.

        Parameters
        ----------
        validated_data : dict
            Cleaned data from ``RegisterRequestSerializer`` containing
            ``username``, ``password``, ``email``, ``phone_number``,
            ``first_name``, ``last_name`` and optionally ``user_type``
            and ``organization``.

        Returns
        -------
        User
            The newly created (and saved) ``User`` instance.

        Raises
        ------
        core.domain.exceptions.Conflict
            If a unique field (username, email, phone_number) is
            already taken.
        """
        validated_data = dict(validated_data)
        validated_data.pop("password_confirm", None)
        password = validated_data.pop("password")

        # Pre-check uniqueness so errors name the offending field
        conflicts = []
        if User.objects.filter(username=validated_data.get("username")).exists():
            conflicts.append("username")
        if User.objects.filter(email__iexact=validated_data.get("email")).exists():
            conflicts.append("email")
        if User.objects.filter(phone_number=validated_data.get("phone_number")).exists():
            conflicts.append("phone_number")

        if conflicts:
            raise Conflict(
                f"The following field(s) already exist: {', '.join(conflicts)}."
            )

        # The pre-check can still lose a race against a parallel registration
        try:
            with transaction.atomic():
                user = User.objects.create_user(password=password, **validated_data)
        except IntegrityError:
            raise Conflict(
                "A user with one of the provided unique fields already exists."
            )

        logger.info("Registered user %s (%s)", user.username, user.user_type)
        return user


class CurrentUserService:
    """Helpers for the authenticated user's own profile."""

    @staticmethod
    def get_profile(user: User) -> User:
        """Return a fresh copy of ``user`` from the database."""
        return User.objects.get(pk=user.pk)

    @staticmethod
    def update_profile(user: User, validated_data: dict[str, Any]) -> User:
        """
        Update the caller's own profile fields.

        Parameters
        ----------
        user : User
            The currently authenticated user.
        validated_data : dict
            Cleaned fields from ``MeUpdateSerializer`` (email,
            phone_number, first_name, last_name, organization).
        """
        for field, value in validated_data.items():
            setattr(user, field, value)
        if validated_data:
            user.save(update_fields=list(validated_data.keys()))
            logger.info(
                "User %s updated profile fields: %s",
                user.pk,
                ", ".join(sorted(validated_data)),
            )
        return CurrentUserService.get_profile(user)

    @staticmethod
    def change_password(user: User, current_password: str, new_password: str) -> None:
        """
        Replace the caller's password.

        Raises
        ------
        ValidationFailed
            ``current_password`` is wrong.
        """
        if not user.check_password(current_password):
            raise ValidationFailed("Current password is incorrect.")
        user.set_password(new_password)
        user.save(update_fields=["password"])
        logger.info("Password changed for user %s", user.pk)
