# routers/approvals.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from core.config import settings
from core.logging_config import logger
from core.rate_limiter import require_rate_limit
from core.utils import normalize_email
from dependencies.db import get_db
from models.approval import (
    ApprovalActionRequest,
    ApprovalActionResult,
    ApprovalStatusRead,
    PendingApprovalRecord,
)
from models.enums import ApprovalAction, ApprovalStatus
from models.signup import (
    EmailSendResponse,
    PendingTeenSignupCreate,
    PendingTeenSignupRead,
    ResendApprovalEmailRequest,
)
from services.approval_actions import ApprovalActionHandler
from services.approval_store import ApprovalStore, TEEN_SIGNUPS
from services.signups import (
    build_signup_action_handler,
    create_pending_signup,
    resend_approval_email,
)


router = APIRouter(tags=["Parent Approval"])


STATUS_MESSAGES = {
    ApprovalStatus.pending: "Waiting for a parent to approve or decline.",
    ApprovalStatus.approved: "This signup has been approved.",
    ApprovalStatus.rejected: "This signup was declined.",
    ApprovalStatus.expired: "This approval link has expired.",
}


def get_action_handler(client=Depends(get_db)) -> ApprovalActionHandler:
    return build_signup_action_handler(client)


def _status_read(record: PendingApprovalRecord) -> ApprovalStatusRead:
    return ApprovalStatusRead(
        id=record.id,
        status=record.status,
        expires_at=record.expires_at,
        updated_at=record.updated_at,
        full_name=record.payload.get("full_name"),
        rejection_reason=record.rejection_reason,
        message=STATUS_MESSAGES.get(record.status),
    )


# -----------------------------------------------------
# POST /pending-signups
# Teen asks for parental approval (public)
# -----------------------------------------------------
@router.post("/pending-signups", response_model=PendingTeenSignupRead, summary="Create pending teen signup")
def create_signup(payload: PendingTeenSignupCreate, request: Request, client=Depends(get_db)):
    require_rate_limit(request, max_requests=5, window_seconds=60, scope="pending-signups")
    return create_pending_signup(client, payload)


# -----------------------------------------------------
# GET /pending-signups/status
# Lookup by token, id, or parent email (+ birthdate)
# -----------------------------------------------------
@router.get("/pending-signups/status", response_model=ApprovalStatusRead, summary="Approval status lookup")
def signup_status(
    request: Request,
    token: Optional[str] = Query(None),
    id: Optional[str] = Query(None),
    parent_email: Optional[str] = Query(None),
    birthdate: Optional[str] = Query(None, description="YYYY-MM-DD"),
    client=Depends(get_db),
):
    require_rate_limit(request, max_requests=30, window_seconds=60, scope="signup-status")

    store = ApprovalStore(TEEN_SIGNUPS, client=client)

    if token:
        record = store.fetch_by_token(token)
    elif id:
        record = store.fetch_by_id(id)
    elif parent_email:
        extra = {"date_of_birth": birthdate} if birthdate else None
        record = store.fetch_by_contact(normalize_email(parent_email), extra)
    else:
        raise HTTPException(400, "Provide token, id, or parent_email")

    if record is None:
        raise HTTPException(404, "No approval request found")

    return _status_read(record)


# -----------------------------------------------------
# POST /pending-signups/resend-email
# -----------------------------------------------------
@router.post("/pending-signups/resend-email", response_model=EmailSendResponse, summary="Resend approval email")
def resend_email(payload: ResendApprovalEmailRequest, request: Request, client=Depends(get_db)):
    email = normalize_email(payload.parent_email)
    require_rate_limit(
        request,
        identifier=f"email:{email}",
        max_requests=1,
        window_seconds=settings.OTP_RESEND_COOLDOWN_SECONDS,
        scope="resend-approval-email",
    )

    delivery = resend_approval_email(client, email)
    if not delivery.sent:
        logger.warning(f"Resend of approval email to {email} failed: {delivery.error}")
        return EmailSendResponse(sent=False, message="We couldn't send the email. Please try again shortly.")

    return EmailSendResponse(sent=True, message="Approval email sent")


# -----------------------------------------------------
# POST /approve-teen-signup
# -----------------------------------------------------
@router.post("/approve-teen-signup", response_model=ApprovalActionResult, summary="Approve or decline a teen signup")
def approve_teen_signup(
    payload: ApprovalActionRequest,
    request: Request,
    handler: ApprovalActionHandler = Depends(get_action_handler),
):
    require_rate_limit(request, max_requests=10, window_seconds=60, scope="approval-action")
    return handler.handle(payload.token, payload.action, payload.reason)


# -----------------------------------------------------
# GET /parent-approve?token=...&action=approve|reject
# The link in the parent's email
# -----------------------------------------------------
@router.get("/parent-approve", summary="Parent approval link")
def parent_approve(
    request: Request,
    token: Optional[str] = Query(None),
    action: Optional[ApprovalAction] = Query(None),
    reason: Optional[str] = Query(None, max_length=500),
    client=Depends(get_db),
    handler: ApprovalActionHandler = Depends(get_action_handler),
):
    if not token:
        raise HTTPException(400, "Missing approval token")

    require_rate_limit(request, max_requests=10, window_seconds=60, scope="approval-action")

    if action is None:
        # Neutral page: never mutates anything
        record = ApprovalStore(TEEN_SIGNUPS, client=client).fetch_by_token(token)
        if record is None:
            raise HTTPException(404, "Invalid or expired approval link")
        return _status_read(record)

    return handler.handle(token, action, reason)
