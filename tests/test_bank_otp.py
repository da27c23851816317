# tests/test_bank_otp.py

"""
Tests for parent approval of bank accounts by SMS code.
"""

import re
from datetime import timedelta
from unittest.mock import Mock, patch

import pytest

from core.errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    PreconditionError,
    ProviderError,
    RateLimitedError,
    ValidationError,
)
from core.notifications import DeliveryResult
from core.utils import utcnow
from models.enums import ApprovalStatus
from services.bank_otp import BankApprovalOtpService, clean_code, generate_code


def sent_sms():
    return Mock(return_value=DeliveryResult(sent=True, provider="twilio", provider_id="SM1"))


def code_from(sms: Mock) -> str:
    body = sms.call_args[0][1]
    return re.search(r"\b(\d{6})\b", body).group(1)


def wrong(code: str) -> str:
    return "000000" if code != "000000" else "111111"


@pytest.fixture
def service(fake_db, parent_row):
    return BankApprovalOtpService(fake_db, sms_sender=sent_sms())


# -----------------------------------------------------
# Code generation
# -----------------------------------------------------
def test_generated_codes_are_six_digits():
    for _ in range(50):
        assert re.fullmatch(r"\d{6}", generate_code())


def test_clean_code_strips_non_digits():
    assert clean_code(" 12-34 56 ") == "123456"
    assert clean_code(123456) == "123456"


# -----------------------------------------------------
# Request
# -----------------------------------------------------
def test_request_sends_code_to_parent_phone(service, fake_db, mock_teen_user):
    response = service.request_code(mock_teen_user)

    to, body = service.sms_sender.call_args[0]
    assert to == "+15551234567"
    assert "Sam Teen" in body
    assert response.parent_phone_masked == "+1***555****"

    row = fake_db.rows("bank_account_approvals")[0]
    assert row["teen_id"] == "teen-1"
    assert row["status"] == "pending"
    assert row["attempts"] == 0
    # only a digest is stored
    assert code_from(service.sms_sender) not in row["otp_code"]


def test_second_request_within_cooldown_is_rate_limited(service, mock_teen_user):
    service.request_code(mock_teen_user)

    with pytest.raises(RateLimitedError) as exc:
        service.request_code(mock_teen_user)

    assert exc.value.status_code == 429
    assert 0 < exc.value.retry_after <= 120
    assert exc.value.headers["Retry-After"] == str(exc.value.retry_after)
    assert service.sms_sender.call_count == 1


def test_request_allowed_after_cooldown(fake_db, parent_row, mock_teen_user):
    now = utcnow()
    clock = Mock(return_value=now)
    service = BankApprovalOtpService(fake_db, sms_sender=sent_sms(), clock=clock)

    service.request_code(mock_teen_user)
    clock.return_value = now + timedelta(seconds=121)
    service.request_code(mock_teen_user)

    assert service.sms_sender.call_count == 2
    assert len(fake_db.rows("bank_account_approvals")) == 1


def test_request_requires_teen(service, mock_parent_user):
    with pytest.raises(PreconditionError):
        service.request_code(mock_parent_user)


def test_request_requires_parent(service, mock_teen_user):
    orphan = mock_teen_user.model_copy(update={"parent_id": None})
    with pytest.raises(ValidationError):
        service.request_code(orphan)


def test_request_requires_parent_phone(service, fake_db, mock_teen_user):
    fake_db.rows("users")[0]["phone"] = None
    with pytest.raises(ValidationError):
        service.request_code(mock_teen_user)


def test_request_after_approval_conflicts(service, mock_teen_user):
    service.request_code(mock_teen_user)
    service.verify_code(mock_teen_user, code_from(service.sms_sender))

    with pytest.raises(ConflictError):
        service.request_code(mock_teen_user)


def test_sms_failure_expires_record_so_retry_is_immediate(fake_db, parent_row, mock_teen_user):
    failing = Mock(return_value=DeliveryResult(sent=False, provider="twilio", error="21211 invalid number"))
    service = BankApprovalOtpService(fake_db, sms_sender=failing)

    with pytest.raises(ProviderError) as exc:
        service.request_code(mock_teen_user)

    assert exc.value.detail["record_updated"] is True
    assert "21211" not in str(exc.value.detail)
    assert fake_db.rows("bank_account_approvals")[0]["status"] == "expired"

    service.sms_sender = sent_sms()
    service.request_code(mock_teen_user)
    assert fake_db.rows("bank_account_approvals")[0]["status"] == "pending"


# -----------------------------------------------------
# Verify
# -----------------------------------------------------
def test_correct_code_approves(service, fake_db, mock_teen_user):
    service.request_code(mock_teen_user)

    response = service.verify_code(mock_teen_user, code_from(service.sms_sender))

    assert response.approved is True
    row = fake_db.rows("bank_account_approvals")[0]
    assert row["status"] == "approved"
    assert row["verified_at"]


def test_verify_is_idempotent_once_approved(service, mock_teen_user):
    service.request_code(mock_teen_user)
    code = code_from(service.sms_sender)
    service.verify_code(mock_teen_user, code)

    again = service.verify_code(mock_teen_user, wrong(code))

    assert again.approved is True
    assert again.message == "Bank account already approved"


def test_wrong_code_counts_attempts(service, fake_db, mock_teen_user):
    service.request_code(mock_teen_user)
    code = code_from(service.sms_sender)

    with pytest.raises(ValidationError) as exc:
        service.verify_code(mock_teen_user, wrong(code))

    assert exc.value.detail["remaining_attempts"] == 4
    assert exc.value.detail["max_attempts_reached"] is False
    assert fake_db.rows("bank_account_approvals")[0]["attempts"] == 1


def test_correct_code_rejected_after_five_failures(service, fake_db, mock_teen_user):
    service.request_code(mock_teen_user)
    code = code_from(service.sms_sender)

    for _ in range(5):
        with pytest.raises(ValidationError):
            service.verify_code(mock_teen_user, wrong(code))

    assert fake_db.rows("bank_account_approvals")[0]["status"] == "blocked"

    with pytest.raises(RateLimitedError):
        service.verify_code(mock_teen_user, code)

    assert fake_db.rows("bank_account_approvals")[0]["status"] == "blocked"


def test_blocked_code_allows_new_request_immediately(service, mock_teen_user):
    service.request_code(mock_teen_user)
    code = code_from(service.sms_sender)
    for _ in range(5):
        with pytest.raises(ValidationError):
            service.verify_code(mock_teen_user, wrong(code))

    service.request_code(mock_teen_user)
    new_code = code_from(service.sms_sender)

    assert service.verify_code(mock_teen_user, new_code).approved is True


def test_expired_code_is_gone(service, fake_db, mock_teen_user):
    service.request_code(mock_teen_user)
    code = code_from(service.sms_sender)
    fake_db.rows("bank_account_approvals")[0]["expires_at"] = (utcnow() - timedelta(seconds=1)).isoformat()

    with pytest.raises(ExpiredError):
        service.verify_code(mock_teen_user, code)

    assert fake_db.rows("bank_account_approvals")[0]["status"] == "expired"


def test_verify_rejects_malformed_code(service, mock_teen_user):
    with pytest.raises(ValidationError):
        service.verify_code(mock_teen_user, "12345")


def test_verify_without_request_is_not_found(service, mock_teen_user):
    with pytest.raises(NotFoundError):
        service.verify_code(mock_teen_user, "123456")


def test_status_reports_masked_phone_and_attempts(service, mock_teen_user):
    assert service.get_status(mock_teen_user).status is None

    service.request_code(mock_teen_user)
    code = code_from(service.sms_sender)
    with pytest.raises(ValidationError):
        service.verify_code(mock_teen_user, wrong(code))

    status = service.get_status(mock_teen_user)
    assert status.status == ApprovalStatus.pending
    assert status.attempts == 1
    assert status.remaining_attempts == 4
    assert status.parent_phone_masked == "+1***555****"


# -----------------------------------------------------
# Routes
# -----------------------------------------------------
def test_otp_routes(client, login_as, mock_teen_user):
    login_as(mock_teen_user)

    with patch("services.bank_otp.send_sms", sent_sms()) as sms:
        first = client.post("/send-bank-account-approval-otp")
        second = client.post("/send-bank-account-approval-otp")

    assert first.status_code == 200
    assert second.status_code == 429
    assert "Retry-After" in second.headers

    bad = client.post("/verify-bank-account-approval-otp", json={"otp_code": "12"})
    assert bad.status_code == 400

    ok = client.post("/verify-bank-account-approval-otp", json={"otp_code": code_from(sms)})
    assert ok.status_code == 200
    assert ok.json()["approved"] is True

    status = client.get("/bank-account-approval/status")
    assert status.json()["status"] == "approved"


def test_otp_status_requires_teen(client, login_as, mock_parent_user):
    login_as(mock_parent_user)
    assert client.get("/bank-account-approval/status").status_code == 403
