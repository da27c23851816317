# tests/test_stripe_account_approvals.py

"""
Tests for parent sign-off on a teen's payment account.
"""

from unittest.mock import patch

import pytest

from core.errors import ValidationError
from core.notifications import DeliveryResult
from services.stripe_account_approvals import StripeAccountApprovalService


SENT = DeliveryResult(sent=True, provider="resend", provider_id="em_1")


@pytest.fixture
def mailer():
    with patch("services.stripe_account_approvals.send_stripe_account_approval_email", return_value=SENT) as mock:
        yield mock


@pytest.fixture
def teen_row(fake_db, parent_row):
    return fake_db.add_row(
        "users",
        id="teen-1",
        email="teen@example.com",
        full_name="Sam Teen",
        role="teen",
        parent_id=parent_row["id"],
        date_of_birth="2010-05-01",
    )


def seed_request(fake_db, status="pending", **extra):
    return fake_db.add_row("stripe_account_approvals", teen_id="teen-1", parent_id="parent-1", status=status, **extra)


# -----------------------------------------------------
# Who needs approval
# -----------------------------------------------------
def test_minor_with_parent_needs_approval(fake_db, teen_row, mock_teen_user):
    assert StripeAccountApprovalService(fake_db).needs_approval(mock_teen_user) is True


def test_adult_and_unlinked_teens_do_not(fake_db, teen_row, mock_teen_user):
    service = StripeAccountApprovalService(fake_db)

    teen_row["date_of_birth"] = "1990-01-01"
    assert service.needs_approval(mock_teen_user) is False

    teen_row["date_of_birth"] = "2010-05-01"
    teen_row["parent_id"] = None
    assert service.needs_approval(mock_teen_user) is False


def test_unknown_birthdate_needs_approval(fake_db, teen_row, mock_teen_user):
    teen_row["date_of_birth"] = None
    assert StripeAccountApprovalService(fake_db).needs_approval(mock_teen_user) is True


def test_needed_route(client, login_as, mock_parent_user, teen_row):
    login_as(mock_parent_user)
    assert client.get("/stripe-account-approval/needed").json() == {"needs_approval": False}


# -----------------------------------------------------
# Teen requests
# -----------------------------------------------------
def test_request_creates_pending_row_and_emails_parent(client, login_as, mock_teen_user, fake_db, mailer):
    login_as(mock_teen_user)

    response = client.post("/stripe-account-approval/request")

    assert response.status_code == 200
    data = response.json()
    assert data["approval"]["status"] == "pending"
    assert data["approval"]["parent_id"] == "parent-1"
    assert data["email_sent"] is True
    mailer.assert_called_once_with("parent@example.com", "Sam Teen")
    assert len(fake_db.rows("stripe_account_approvals")) == 1


def test_repeat_request_reuses_pending_row(client, login_as, mock_teen_user, fake_db, mailer):
    row = seed_request(fake_db)
    login_as(mock_teen_user)

    data = client.post("/stripe-account-approval/request").json()

    assert data["approval"]["id"] == row["id"]
    assert len(fake_db.rows("stripe_account_approvals")) == 1


def test_request_after_rejection_reopens(client, login_as, mock_teen_user, fake_db, mailer):
    row = seed_request(fake_db, status="rejected", reason="Too young")
    login_as(mock_teen_user)

    data = client.post("/stripe-account-approval/request").json()

    assert data["approval"]["id"] == row["id"]
    assert data["approval"]["status"] == "pending"
    assert row["reason"] is None


def test_approved_request_is_returned_without_email(client, login_as, mock_teen_user, fake_db, mailer):
    seed_request(fake_db, status="approved")
    login_as(mock_teen_user)

    data = client.post("/stripe-account-approval/request").json()

    assert data["approval"]["status"] == "approved"
    assert data["email_sent"] is None
    mailer.assert_not_called()


def test_email_failure_does_not_fail_request(client, login_as, mock_teen_user, fake_db):
    login_as(mock_teen_user)

    with patch(
        "services.stripe_account_approvals.send_stripe_account_approval_email",
        return_value=DeliveryResult(sent=False, provider="resend", error="boom"),
    ):
        response = client.post("/stripe-account-approval/request")

    assert response.status_code == 200
    assert response.json()["email_sent"] is False
    assert fake_db.rows("stripe_account_approvals")[0]["status"] == "pending"


def test_request_requires_linked_parent(fake_db, mock_teen_user):
    orphan = mock_teen_user.model_copy(update={"parent_id": None})

    with pytest.raises(ValidationError):
        StripeAccountApprovalService(fake_db).request(orphan)


def test_parents_cannot_request(client, login_as, mock_parent_user):
    login_as(mock_parent_user)
    assert client.post("/stripe-account-approval/request").status_code == 403


def test_status_is_null_before_request(client, login_as, mock_teen_user):
    login_as(mock_teen_user)

    response = client.get("/stripe-account-approval/status")

    assert response.status_code == 200
    assert response.json() is None


def test_resend_email_for_own_pending_request(client, login_as, mock_teen_user, fake_db, mailer):
    row = seed_request(fake_db)
    login_as(mock_teen_user)

    response = client.post("/send-stripe-approval-email", json={"approval_id": row["id"]})

    assert response.status_code == 200
    assert response.json()["sent"] is True
    assert response.json()["dashboard_url"].endswith("/parent/dashboard")


def test_resend_email_for_someone_elses_request(client, login_as, mock_teen_user, fake_db, mailer):
    row = fake_db.add_row("stripe_account_approvals", teen_id="teen-2", parent_id="parent-1", status="pending")
    login_as(mock_teen_user)

    response = client.post("/send-stripe-approval-email", json={"approval_id": row["id"]})

    assert response.status_code == 404
    mailer.assert_not_called()


# -----------------------------------------------------
# Parent decides
# -----------------------------------------------------
def test_parent_lists_requests_with_teen_names(client, login_as, mock_parent_user, teen_row, fake_db):
    seed_request(fake_db)
    seed_request(fake_db, status="rejected")
    login_as(mock_parent_user)

    everything = client.get("/stripe-account-approvals").json()
    pending = client.get("/stripe-account-approvals", params={"pending": "true"}).json()

    assert len(everything) == 2
    assert everything[0]["teen_name"] == "Sam Teen"
    assert [a["status"] for a in pending] == ["pending"]


def test_parent_approves(client, login_as, mock_parent_user, fake_db):
    row = seed_request(fake_db)
    login_as(mock_parent_user)

    response = client.post(f"/stripe-account-approvals/{row['id']}/decision", json={"action": "approve"})

    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert row["status"] == "approved"


def test_parent_rejects_with_reason_once(client, login_as, mock_parent_user, fake_db):
    row = seed_request(fake_db)
    login_as(mock_parent_user)
    url = f"/stripe-account-approvals/{row['id']}/decision"

    client.post(url, json={"action": "reject", "reason": "Not yet"})
    again = client.post(url, json={"action": "reject", "reason": "Changed"})
    flipped = client.post(url, json={"action": "approve"})

    assert row["reason"] == "Not yet"
    assert again.json()["already_processed"] is True
    assert flipped.status_code == 409


def test_other_parents_request_is_not_found(client, login_as, mock_parent_user, fake_db):
    row = fake_db.add_row("stripe_account_approvals", teen_id="teen-9", parent_id="parent-9", status="pending")
    login_as(mock_parent_user)

    response = client.post(f"/stripe-account-approvals/{row['id']}/decision", json={"action": "approve"})

    assert response.status_code == 404
    assert row["status"] == "pending"
