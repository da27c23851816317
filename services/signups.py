# services/signups.py

"""
Teen signup approval: creating the pending record, emailing the parent,
and the follow-up work once the parent approves.
"""

import secrets
from datetime import date, timedelta
from typing import Optional

from core.config import settings
from core.email_utils import (
    send_approval_decision_email,
    send_parent_account_email,
    send_parent_approval_email,
)
from core.errors import NotFoundError, ProviderError, supabase_error
from core.logging_config import logger
from core.supabase_helpers import safe_insert
from core.utils import normalize_email, utcnow
from models.approval import PendingApprovalRecord
from models.enums import ApprovalStatus
from models.signup import PendingTeenSignupCreate, PendingTeenSignupRead
from services.approval_actions import ApprovalActionHandler
from services.approval_store import ApprovalStore, TEEN_SIGNUPS
from services.parent_accounts import find_or_create_parent


def new_approval_token() -> str:
    return secrets.token_urlsafe(32)


def _to_read(row: dict, **extra) -> PendingTeenSignupRead:
    return PendingTeenSignupRead(
        id=str(row["id"]),
        full_name=row["full_name"],
        parent_email=row["parent_email"],
        status=row.get("status") or ApprovalStatus.pending.value,
        token_expires_at=row.get("token_expires_at"),
        created_at=row.get("created_at"),
        **extra,
    )


def teen_age(date_of_birth) -> Optional[int]:
    if not date_of_birth:
        return None
    dob = date.fromisoformat(date_of_birth[:10]) if isinstance(date_of_birth, str) else date_of_birth
    today = utcnow().date()
    return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))


# -----------------------------------------------------
# Create
# -----------------------------------------------------
def find_open_signup(client, parent_email: str, full_name: str) -> Optional[dict]:
    """
    Latest pending or approved signup for the same teen (same parent
    email, same name ignoring case). Pending wins over approved.
    """
    try:
        result = (
            client.table(TEEN_SIGNUPS.name)
            .select("*")
            .eq("parent_email", parent_email)
            .ilike("full_name", full_name.strip())
            .in_("status", [ApprovalStatus.pending.value, ApprovalStatus.approved.value])
            .order("created_at", desc=True)
            .execute()
        )
    except Exception as e:
        supabase_error(e, "Failed to look up existing signups")

    rows = result.data or []
    store = ApprovalStore(TEEN_SIGNUPS, client=client)
    for wanted in (ApprovalStatus.pending, ApprovalStatus.approved):
        for row in rows:
            if store.table.to_record(row).effective_status() == wanted:
                return row
    return None


def create_pending_signup(client, payload: PendingTeenSignupCreate) -> PendingTeenSignupRead:
    """
    Create the pending record and send the approval email.

    Asking twice for the same teen returns the existing open request
    instead of creating a second one.
    """
    parent_email = normalize_email(payload.parent_email)

    existing = find_open_signup(client, parent_email, payload.full_name)
    if existing:
        logger.info(f"Reusing {existing['status']} signup {existing['id']} for {parent_email}")
        return _to_read(existing, existing=True)

    expires_at = utcnow() + timedelta(days=settings.APPROVAL_TOKEN_TTL_DAYS)
    token = new_approval_token()

    row = safe_insert(
        TEEN_SIGNUPS.name,
        {
            "full_name": payload.full_name,
            "date_of_birth": payload.date_of_birth,
            "parent_email": parent_email,
            "parent_phone": payload.parent_phone,
            "approval_token": token,
            "token_expires_at": expires_at,
            "status": ApprovalStatus.pending,
        },
        client=client,
    )
    if not row:
        raise ProviderError("Failed to create signup request")

    logger.info(f"Pending signup {row['id']} created for {parent_email}")

    # The record stands even if the email fails; the teen can resend
    delivery = send_parent_approval_email(
        parent_email,
        token,
        payload.full_name,
        expires_at,
        teen_age=teen_age(payload.date_of_birth),
    )
    if not delivery.sent:
        logger.warning(f"Approval email for signup {row['id']} not sent: {delivery.error}")

    return _to_read(row, email_sent=delivery.sent)


def resend_approval_email(client, parent_email: str):
    """Re-send the link for the most recent pending signup of `parent_email`."""
    store = ApprovalStore(TEEN_SIGNUPS, client=client)
    record = store.fetch_by_contact(normalize_email(parent_email))
    if record is None or record.status != ApprovalStatus.pending:
        raise NotFoundError("No pending approval request for this email")

    return send_parent_approval_email(
        record.owner_contact,
        record.token,
        record.payload.get("full_name") or "Your teen",
        record.expires_at,
        teen_age=teen_age(record.payload.get("date_of_birth")),
    )


# -----------------------------------------------------
# After the parent decides
# -----------------------------------------------------
def make_signup_side_effects(client):
    def provision_parent_account(record: PendingApprovalRecord) -> dict:
        parent_id, created = find_or_create_parent(
            client,
            record.owner_contact,
            record.payload.get("parent_phone"),
            record.payload.get("full_name"),
        )
        if created:
            delivery = send_parent_account_email(record.owner_contact, record.payload.get("full_name"))
            if not delivery.sent:
                logger.warning(f"Parent account email to {record.owner_contact} not sent")
        return {"parent_id": parent_id, "created": created}

    def confirm_approval(record: PendingApprovalRecord) -> dict:
        delivery = send_approval_decision_email(
            record.owner_contact, record.payload.get("full_name") or "your teen", approved=True
        )
        return {"sent": delivery.sent}

    def confirm_rejection(record: PendingApprovalRecord) -> dict:
        delivery = send_approval_decision_email(
            record.owner_contact, record.payload.get("full_name") or "your teen", approved=False
        )
        return {"sent": delivery.sent}

    on_approve = [
        ("provision_parent_account", provision_parent_account),
        ("confirmation_email", confirm_approval),
    ]
    on_reject = [("confirmation_email", confirm_rejection)]
    return on_approve, on_reject


def build_signup_action_handler(client) -> ApprovalActionHandler:
    on_approve, on_reject = make_signup_side_effects(client)
    return ApprovalActionHandler(
        ApprovalStore(TEEN_SIGNUPS, client=client),
        on_approve=on_approve,
        on_reject=on_reject,
    )
