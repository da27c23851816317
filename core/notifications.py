# core/notifications.py
import base64
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List, Optional

import requests
from pydantic import BaseModel

from core.config import settings
from core.logging_config import logger, mask_phone


RESEND_API_URL = "https://api.resend.com/emails"
TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class DeliveryResult(BaseModel):
    """
    Outcome of one outbound notification.

    `sent` is what callers branch on; `error` holds the provider's own
    message for logs only and is never shown to end users.
    """
    sent: bool
    provider: str
    provider_id: Optional[str] = None
    skipped: bool = False
    error: Optional[str] = None


# -----------------------------------------------------
# 📧 Send email (Resend, SMTP fallback)
# -----------------------------------------------------
def send_email(
    subject: str,
    body: str,
    to: str = None,
    recipients: Optional[List[str]] = None,
    html_body: Optional[str] = None,
) -> DeliveryResult:
    """
    Send an email through Resend when RESEND_API_KEY is set,
    otherwise through SMTP. Never raises for provider failures.

    Args:
        subject: Email subject
        body: Plain text email body
        to: Single recipient email
        recipients: List of recipient email addresses
        html_body: Optional HTML email body
    """
    recipient_list = recipients or ([to] if to else [])

    if not recipient_list:
        logger.warning("No recipients specified — skipping email.")
        return DeliveryResult(sent=False, provider="none", skipped=True, error="no recipients")

    if settings.RESEND_API_KEY:
        return _send_via_resend(subject, body, recipient_list, html_body)

    if all([settings.SMTP_HOST, settings.SMTP_PORT, settings.SMTP_USER, settings.SMTP_PASS]):
        return _send_via_smtp(subject, body, recipient_list, html_body)

    logger.warning("Email credentials missing — skipping email.")
    return DeliveryResult(sent=False, provider="none", skipped=True, error="email not configured")


def _send_via_resend(subject: str, body: str, recipient_list: List[str], html_body: Optional[str]) -> DeliveryResult:
    payload = {
        "from": f"{settings.RESEND_FROM_NAME} <{settings.RESEND_FROM_EMAIL}>",
        "to": recipient_list,
        "subject": subject,
        "text": body,
    }
    if html_body:
        payload["html"] = html_body

    try:
        response = requests.post(
            RESEND_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
            timeout=settings.PROVIDER_HTTP_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error(f"Resend request failed: {e}")
        return DeliveryResult(sent=False, provider="resend", error=str(e))

    if not response.ok:
        logger.error(f"Resend API error ({response.status_code}): {response.text}")
        return DeliveryResult(sent=False, provider="resend", error=f"HTTP {response.status_code}")

    email_id = (response.json() or {}).get("id")
    logger.info(f"Email sent via Resend to {', '.join(recipient_list)} (id={email_id})")
    return DeliveryResult(sent=True, provider="resend", provider_id=email_id)


def _send_via_smtp(subject: str, body: str, recipient_list: List[str], html_body: Optional[str]) -> DeliveryResult:
    try:
        msg = MIMEMultipart("alternative")
        msg["From"] = settings.SMTP_USER
        msg["To"] = ", ".join(recipient_list)
        msg["Subject"] = subject

        msg.attach(MIMEText(body, "plain"))
        if html_body:
            msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            server.login(settings.SMTP_USER, settings.SMTP_PASS)
            server.send_message(msg)

    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Email failed: {e}")
        return DeliveryResult(sent=False, provider="smtp", error=str(e))

    logger.info(f"Email sent to {', '.join(recipient_list)}")
    return DeliveryResult(sent=True, provider="smtp")


# -----------------------------------------------------
# 📱 Send SMS (Twilio Messages API)
# -----------------------------------------------------
def send_sms(to: str, body: str) -> DeliveryResult:
    """Send a text message. Never raises for provider failures."""
    sid = settings.TWILIO_ACCOUNT_SID
    auth_token = settings.TWILIO_AUTH_TOKEN
    from_number = settings.TWILIO_FROM_NUMBER

    if not all([sid, auth_token, from_number]):
        logger.error("Twilio not configured (TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN / TWILIO_FROM_NUMBER)")
        return DeliveryResult(sent=False, provider="twilio", skipped=True, error="sms not configured")

    credentials = base64.b64encode(f"{sid}:{auth_token}".encode()).decode()

    try:
        response = requests.post(
            TWILIO_MESSAGES_URL.format(sid=sid),
            data={"To": to, "From": from_number, "Body": body},
            headers={"Authorization": f"Basic {credentials}"},
            timeout=settings.PROVIDER_HTTP_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error(f"Twilio request failed for {mask_phone(to)}: {e}")
        return DeliveryResult(sent=False, provider="twilio", error=str(e))

    data = response.json() if response.content else {}
    if not response.ok:
        logger.error(
            f"Twilio API error ({response.status_code}) for {mask_phone(to)}: "
            f"{data.get('code')} {data.get('message')}"
        )
        return DeliveryResult(sent=False, provider="twilio", error=str(data.get("message") or response.status_code))

    logger.info(f"SMS sent to {mask_phone(to)} (sid={data.get('sid')})")
    return DeliveryResult(sent=True, provider="twilio", provider_id=data.get("sid"))
