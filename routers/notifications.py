# routers/notifications.py

from fastapi import APIRouter, Depends, HTTPException, Request

from core.email_utils import (
    build_approval_links,
    send_parent_account_email,
    send_parent_approval_email,
)
from core.logging_config import logger
from core.rate_limiter import require_rate_limit
from core.utils import normalize_email
from dependencies.auth import CurrentUser, get_current_user
from dependencies.db import get_db
from models.enums import ApprovalStatus
from models.signup import (
    EmailSendResponse,
    SendParentAccountEmailRequest,
    SendParentApprovalEmailRequest,
)
from services.approval_store import ApprovalStore, TEEN_SIGNUPS


router = APIRouter(tags=["Notifications"])


# -----------------------------------------------------
# POST /send-parent-approval-email
# Only for a pending signup addressed to this parent
# -----------------------------------------------------
@router.post("/send-parent-approval-email", response_model=EmailSendResponse, summary="Send the approval email")
def send_approval_email(payload: SendParentApprovalEmailRequest, request: Request, client=Depends(get_db)):
    email = normalize_email(payload.parent_email)
    require_rate_limit(request, identifier=f"email:{email}", max_requests=3, window_seconds=300, scope="approval-email")

    record = ApprovalStore(TEEN_SIGNUPS, client=client).fetch_by_token(payload.token)
    if record is None or normalize_email(record.owner_contact) != email:
        raise HTTPException(404, "No approval request found for this email")
    if record.status != ApprovalStatus.pending:
        raise HTTPException(400, f"This request is already {record.status}")

    links = build_approval_links(payload.token, payload.approval_url)
    delivery = send_parent_approval_email(
        email,
        payload.token,
        payload.teen_name,
        record.expires_at,
        teen_age=payload.teen_age,
        base_url=payload.approval_url,
    )

    if not delivery.sent:
        logger.warning(f"Approval email to {email} not sent: {delivery.error}")
        return EmailSendResponse(
            sent=False,
            message="Email could not be sent. Share the approval link instead.",
            approval_url=links["status_url"],
        )

    return EmailSendResponse(sent=True, message="Approval email sent", approval_url=links["status_url"])


# -----------------------------------------------------
# POST /send-parent-account-email
# -----------------------------------------------------
@router.post("/send-parent-account-email", response_model=EmailSendResponse, summary="Send the parent account email")
def send_account_email(
    payload: SendParentAccountEmailRequest,
    current_user: CurrentUser = Depends(get_current_user),
):
    delivery = send_parent_account_email(normalize_email(payload.parent_email), payload.teen_name or current_user.full_name)
    if not delivery.sent:
        return EmailSendResponse(sent=False, message="Email could not be sent")
    return EmailSendResponse(sent=True, message="Parent account email sent")
