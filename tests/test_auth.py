# tests/test_auth.py

"""
Tests for bearer-token authentication.
"""

from fastapi.testclient import TestClient


def test_missing_token(client: TestClient):
    response = client.post("/send-bank-account-approval-otp")
    assert response.status_code == 401
    assert response.json()["detail"] == "Missing authorization header"


def test_invalid_token(client: TestClient):
    response = client.get(
        "/bank-account-approval/status",
        headers={"Authorization": "Bearer not-a-session"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired authentication token"


def test_token_without_profile(client: TestClient, fake_db):
    fake_db.add_auth_user("ghost@example.com", token="ghost-token")

    response = client.get(
        "/bank-account-approval/status",
        headers={"Authorization": "Bearer ghost-token"},
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "User profile not found"


def test_role_comes_from_profile_not_metadata(client: TestClient, fake_db):
    user = fake_db.add_auth_user("t@example.com", token="teen-token", role="parent")
    fake_db.add_row("users", id=user.id, email="t@example.com", role="teen", full_name="Sam Teen")

    response = client.get(
        "/bank-account-approval/status",
        headers={"Authorization": "Bearer teen-token"},
    )

    assert response.status_code == 200
    assert response.json()["status"] is None


def test_role_guard(client: TestClient, fake_db):
    user = fake_db.add_auth_user("p@example.com", token="parent-token")
    fake_db.add_row("users", id=user.id, email="p@example.com", role="parent")

    response = client.get(
        "/bank-account-approval/status",
        headers={"Authorization": "Bearer parent-token"},
    )

    assert response.status_code == 403
