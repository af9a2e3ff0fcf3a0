"""
Root conftest.py — shared fixtures for the entire test suite.

Provides:
  - ``api_client`` fixture returning a DRF ``APIClient``.
  - ``create_user`` factory fixture for creating test users.
  - ``auth_header`` fixture for authenticated requests (JWT).
  - ``auth_client`` fixture returning a client already logged in as a user.
  - ``report_case`` factory fixture creating an ``open`` case.
"""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def create_user(db):
    """
    Factory fixture that creates a user with sensible defaults.

    Usage::

        def test_something(create_user):
            user = create_user(username="alice")
            # or with all fields:
            user = create_user(
                username="bob",
                password="Str0ng!Pass",
                email="bob@example.com",
                phone_number="+15551234567",
                user_type="volunteer",
            )
    """
    from accounts.models import User

    _counter = 0

    def _factory(
        *,
        username: str | None = None,
        password: str = "TestPass123!",
        email: str | None = None,
        phone_number: str | None = None,
        user_type: str = "reporter",
        is_active: bool = True,
        **kwargs,
    ) -> User:
        nonlocal _counter
        _counter += 1
        if username is None:
            username = f"testuser{_counter}"
        if email is None:
            email = f"{username}@test.local"
        if phone_number is None:
            phone_number = f"0912{_counter:07d}"

        return User.objects.create_user(
            username=username,
            password=password,
            email=email,
            phone_number=phone_number,
            user_type=user_type,
            is_active=is_active,
            **kwargs,
        )

    return _factory


@pytest.fixture()
def auth_header(create_user):
    """
    Returns a helper function that creates a user and returns an
    ``Authorization`` header dict with a valid JWT access token.

    Usage::

        def test_protected(auth_header, api_client):
            header = auth_header(username="alice")
            api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])
            resp = api_client.get("/api/core/notifications/")
            assert resp.status_code != 401

    The returned dict looks like::

        {"Authorization": "Bearer eyJ..."}
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(*, username: str | None = None, **user_kwargs) -> dict[str, str]:
        user = create_user(username=username, **user_kwargs)
        token = AccessToken.for_user(user)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def auth_client():
    """
    Returns a helper that builds an ``APIClient`` authenticated as
    ``user`` with a real JWT access token.

    Usage::

        def test_claim(auth_client, create_user):
            helper = create_user(user_type="volunteer")
            client = auth_client(helper)
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(user) -> APIClient:
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {AccessToken.for_user(user)}")
        return client

    return _make


@pytest.fixture()
def report_case(create_user):
    """
    Factory fixture that reports a new case through the service layer.

    Usage::

        case = report_case()                       # new reporter
        case = report_case(reporter=alice, animal_condition="sick")
    """
    from cases.services import CaseReportService

    def _make(*, reporter=None, **overrides):
        if reporter is None:
            reporter = create_user(user_type="reporter")
        data = {
            "animal_type": "dog",
            "animal_condition": "injured",
            "description": "Limping dog near the bus stop, left hind leg bleeding.",
            "address": "12 Market Street",
            "contact_phone": "+15551234567",
            "photos": ["https://cdn.example.com/report-1.jpg"],
        }
        data.update(overrides)
        return CaseReportService.report_case(data, reporter)

    return _make
