# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.
"""

import pytest
from fastapi.testclient import TestClient
from typing import Generator

from main import create_app
from dependencies.auth import CurrentUser, get_current_user
from dependencies.db import get_db
from dependencies.payments import get_payment_provider
from tests.fakes import FakePaymentProvider, FakeSupabase


@pytest.fixture
def fake_db() -> FakeSupabase:
    """Empty in-memory Supabase."""
    return FakeSupabase()


@pytest.fixture
def payment_provider() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture(scope="function")
def app(fake_db, payment_provider):
    """Test FastAPI application wired to the fakes."""
    app = create_app()
    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[get_payment_provider] = lambda: payment_provider
    return app


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def parent_row(fake_db):
    return fake_db.add_row(
        "users",
        id="parent-1",
        email="parent@example.com",
        full_name="Pat Parent",
        role="parent",
        phone="+15551234567",
    )


@pytest.fixture
def mock_teen_user(parent_row):
    """A teen whose parent is on file."""
    return CurrentUser(
        id="teen-1",
        email="teen@example.com",
        role="teen",
        full_name="Sam Teen",
        parent_id=parent_row["id"],
        parent_email=parent_row["email"],
    )


@pytest.fixture
def mock_parent_user(parent_row):
    return CurrentUser(
        id=parent_row["id"],
        email=parent_row["email"],
        role="parent",
        full_name=parent_row["full_name"],
    )


@pytest.fixture
def login_as(app):
    """login_as(user) makes every authenticated route see `user`."""
    def _login(user: CurrentUser):
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _login


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Reset rate limiter before each test."""
    from core.rate_limiter import reset_rate_limits as reset
    reset()
    yield
    reset()
