# tests/test_notifications.py

"""
Tests for outbound email / SMS delivery.
"""

from unittest.mock import Mock, patch

import requests

from core.email_utils import build_approval_links
from core.notifications import send_email, send_sms


def http_response(status=200, payload=None):
    response = Mock()
    response.ok = status < 400
    response.status_code = status
    response.json.return_value = payload or {}
    response.content = b"{}"
    response.text = "{}"
    return response


TWILIO = {
    "TWILIO_ACCOUNT_SID": "AC123",
    "TWILIO_AUTH_TOKEN": "secret",
    "TWILIO_FROM_NUMBER": "+15550000000",
}


def configure(**values):
    return patch.multiple("core.notifications.settings", **values)


# -----------------------------------------------------
# Email
# -----------------------------------------------------
def test_email_skipped_when_unconfigured():
    with configure(RESEND_API_KEY=None, SMTP_HOST=None), patch("core.notifications.requests.post") as post:
        result = send_email("Hi", "Body", to="p@x.com")

    assert result.sent is False
    assert result.skipped is True
    post.assert_not_called()


def test_email_via_resend():
    with configure(RESEND_API_KEY="re_test"), patch("core.notifications.requests.post") as post:
        post.return_value = http_response(payload={"id": "email-1"})
        result = send_email("Hi", "Body", to="p@x.com", html_body="<p>Body</p>")

    assert result.sent is True
    assert result.provider_id == "email-1"
    payload = post.call_args.kwargs["json"]
    assert payload["to"] == ["p@x.com"]
    assert payload["html"] == "<p>Body</p>"
    assert post.call_args.kwargs["timeout"]


def test_resend_error_is_reported_not_raised():
    with configure(RESEND_API_KEY="re_test"), patch("core.notifications.requests.post") as post:
        post.return_value = http_response(status=422)
        result = send_email("Hi", "Body", to="p@x.com")

    assert result.sent is False
    assert result.error == "HTTP 422"


def test_resend_network_failure():
    with configure(RESEND_API_KEY="re_test"), patch("core.notifications.requests.post") as post:
        post.side_effect = requests.ConnectionError("down")
        result = send_email("Hi", "Body", to="p@x.com")

    assert result.sent is False


# -----------------------------------------------------
# SMS
# -----------------------------------------------------
def test_sms_skipped_when_unconfigured():
    with configure(TWILIO_ACCOUNT_SID=None), patch("core.notifications.requests.post") as post:
        result = send_sms("+15551234567", "code 123456")

    assert result.sent is False
    assert result.skipped is True
    post.assert_not_called()


def test_sms_via_twilio():
    with configure(**TWILIO), patch("core.notifications.requests.post") as post:
        post.return_value = http_response(status=201, payload={"sid": "SM1"})
        result = send_sms("+15551234567", "code 123456")

    assert result.sent is True
    assert result.provider_id == "SM1"
    assert "AC123" in post.call_args.args[0]
    assert post.call_args.kwargs["data"]["To"] == "+15551234567"
    assert post.call_args.kwargs["headers"]["Authorization"].startswith("Basic ")


def test_twilio_error():
    with configure(**TWILIO), patch("core.notifications.requests.post") as post:
        post.return_value = http_response(status=400, payload={"code": 21211, "message": "Invalid 'To' Phone Number"})
        result = send_sms("+1555", "code")

    assert result.sent is False
    assert "Invalid" in result.error


# -----------------------------------------------------
# Links
# -----------------------------------------------------
def test_approval_links():
    links = build_approval_links("abc", "https://ollie.app/parent-approve?x=1")

    assert links["status_url"] == "https://ollie.app/parent-approve?token=abc"
    assert links["approve_url"] == "https://ollie.app/parent-approve?token=abc&action=approve"
    assert links["reject_url"] == "https://ollie.app/parent-approve?token=abc&action=reject"
