# core/email_utils.py

from datetime import datetime
from html import escape
from typing import Optional
from urllib.parse import urlencode

from core.config import settings
from core.notifications import send_email, DeliveryResult
from core.logging_config import logger


def build_approval_links(token: str, base_url: Optional[str] = None) -> dict:
    """
    Approve / reject / neutral-status URLs for an emailed approval request.

    A caller-supplied URL may include the "/parent-approve" path; only the
    part before it is kept.
    """
    base = (base_url or settings.APP_WEB_URL).split("/parent-approve")[0].rstrip("/")
    return {
        "status_url": f"{base}/parent-approve?{urlencode({'token': token})}",
        "approve_url": f"{base}/parent-approve?{urlencode({'token': token, 'action': 'approve'})}",
        "reject_url": f"{base}/parent-approve?{urlencode({'token': token, 'action': 'reject'})}",
    }


def _format_when(value: datetime) -> str:
    return value.strftime("%B %d, %Y at %I:%M %p UTC")


def send_parent_approval_email(
    parent_email: str,
    token: str,
    teen_name: str,
    expires_at: datetime,
    teen_age: Optional[int] = None,
    base_url: Optional[str] = None,
) -> DeliveryResult:
    """
    Ask a parent to approve (or decline) their teen's signup.
    """
    links = build_approval_links(token, base_url)
    age_line = f" ({teen_age})" if teen_age is not None else ""

    subject = "Parental Approval Required for Your Teen to Use Ollie"
    body = f"""
Hello,

Your teen, {teen_name}{age_line}, has signed up for Ollie, an app that helps
teens earn money by completing simple, local tasks for trusted neighbors.

Because your teen is under 18, your approval is required before their
account can be activated.

Approve: {links['approve_url']}
Decline: {links['reject_url']}

This link expires on {_format_when(expires_at)}.

The Ollie Team
"""
    html_body = f"""
<p>Hello,</p>
<p>Your teen, <strong>{escape(teen_name)}</strong>{escape(age_line)}, has signed up for Ollie.
Because your teen is under 18, your approval is required before their account can be activated.</p>
<p><a href="{links['approve_url']}">Approve</a> &nbsp;|&nbsp; <a href="{links['reject_url']}">Decline</a></p>
<p>This link expires on {_format_when(expires_at)}.</p>
"""

    result = send_email(subject=subject, body=body, to=parent_email, html_body=html_body)
    if result.sent:
        logger.info(f"Parent approval email sent to {parent_email}")
    return result


def send_parent_account_email(parent_email: str, teen_name: Optional[str] = None) -> DeliveryResult:
    """
    Tell a parent that a provisional Ollie account now exists for them.
    """
    who = teen_name or "your teen"
    login_url = f"{settings.APP_WEB_URL.rstrip('/')}/auth/login"

    subject = "Your Ollie Parent Account"
    body = f"""
Hello,

Thanks for approving {who}'s Ollie account. We created a parent account
for you so you can follow their gigs and approve payouts.

Set your password and sign in here:
{login_url}

The Ollie Team
"""
    return send_email(subject=subject, body=body, to=parent_email)


def send_approval_decision_email(parent_email: str, teen_name: str, approved: bool) -> DeliveryResult:
    """Confirmation sent to the approving parent after they act on the link."""
    decision = "approved" if approved else "declined"
    subject = f"You {decision} {teen_name}'s Ollie signup"
    body = f"""
Hello,

This confirms that you {decision} {teen_name}'s request to join Ollie.

If this wasn't you, reply to this email.

The Ollie Team
"""
    return send_email(subject=subject, body=body, to=parent_email)


def parent_dashboard_url() -> str:
    return f"{settings.APP_WEB_URL.rstrip('/')}/parent/dashboard"


def send_stripe_account_approval_email(parent_email: str, teen_name: str, dashboard_url: Optional[str] = None) -> DeliveryResult:
    """
    Ask a parent to approve their teen's payment account from the parent
    dashboard. There is no one-click link: the decision needs a signed-in
    parent.
    """
    url = dashboard_url or parent_dashboard_url()

    subject = f"Payment Account Setup Approval Required for {teen_name}"
    body = f"""
Hello,

Your teen, {teen_name}, has requested to set up a payment account on Ollie
to receive payments for completed gigs.

Because your teen is under 18, your approval is required before they can
connect their payment account. Approving lets your teen connect a Stripe
payment account and receive payouts for completed gigs.

Review and approve the request from your parent dashboard:
{url}

Warm regards,
The Ollie Team
"""
    html_body = f"""
<p>Hello,</p>
<p>Your teen, <strong>{escape(teen_name)}</strong>, has requested to set up a payment account on Ollie
to receive payments for completed gigs.</p>
<p>Because your teen is under 18, your approval is required before they can connect their payment account.</p>
<p><a href="{escape(url)}">Review &amp; Approve Payment Account</a></p>
"""

    result = send_email(subject=subject, body=body, to=parent_email, html_body=html_body)
    if result.sent:
        logger.info(f"Payment account approval email sent to {parent_email}")
    return result


def send_neighbor_approval_email(email: str, full_name: Optional[str] = None) -> DeliveryResult:
    """Welcome mail once an admin approves a neighbor application."""
    login_url = f"{settings.APP_WEB_URL.rstrip('/')}/auth/login"
    greeting = f"Hi {full_name}," if full_name else "Hello,"

    subject = "Your Ollie Application Has Been Approved!"
    body = f"""
{greeting}

Welcome to Ollie! Your neighbor application has been approved. You can now
post tasks for local teens who are ready to help.

Sign in here:
{login_url}

The Ollie Team
"""
    return send_email(subject=subject, body=body, to=email)
