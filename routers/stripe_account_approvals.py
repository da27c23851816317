# routers/stripe_account_approvals.py

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from core.logging_config import logger
from core.rate_limiter import require_rate_limit
from dependencies.auth import CurrentUser, get_current_user, requires_role
from dependencies.db import get_db
from models.approval import ApprovalActionResult, ApprovalDecisionRequest
from models.stripe_account_approval import (
    SendStripeApprovalEmailRequest,
    StripeAccountApprovalRead,
    StripeAccountApprovalRequestResponse,
    StripeApprovalEmailResponse,
    StripeApprovalNeededResponse,
)
from services.stripe_account_approvals import StripeAccountApprovalService, to_read


router = APIRouter(tags=["Payment Account Approval"])


# -----------------------------------------------------
# GET /stripe-account-approval/needed
# -----------------------------------------------------
@router.get("/stripe-account-approval/needed", response_model=StripeApprovalNeededResponse, summary="Does this teen need sign-off")
def approval_needed(
    current_user: CurrentUser = Depends(get_current_user),
    client=Depends(get_db),
):
    return StripeApprovalNeededResponse(needs_approval=StripeAccountApprovalService(client).needs_approval(current_user))


# -----------------------------------------------------
# GET /stripe-account-approval/status
# null until the teen has asked
# -----------------------------------------------------
@router.get("/stripe-account-approval/status", response_model=Optional[StripeAccountApprovalRead], summary="Teen's request state")
def approval_status(
    current_user: CurrentUser = Depends(requires_role(["teen"])),
    client=Depends(get_db),
):
    record = StripeAccountApprovalService(client).get_status(current_user)
    return to_read(record) if record else None


# -----------------------------------------------------
# POST /stripe-account-approval/request
# -----------------------------------------------------
@router.post("/stripe-account-approval/request", response_model=StripeAccountApprovalRequestResponse, summary="Ask the parent")
def request_approval(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    client=Depends(get_db),
):
    require_rate_limit(request, identifier=f"user:{current_user.id}", max_requests=3, window_seconds=300, scope="stripe-approval-request")
    record, email_sent = StripeAccountApprovalService(client).request(current_user)
    return StripeAccountApprovalRequestResponse(approval=to_read(record), email_sent=email_sent)


# -----------------------------------------------------
# POST /send-stripe-approval-email
# -----------------------------------------------------
@router.post("/send-stripe-approval-email", response_model=StripeApprovalEmailResponse, summary="Email the parent again")
def send_approval_email(
    payload: SendStripeApprovalEmailRequest,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    client=Depends(get_db),
):
    require_rate_limit(request, identifier=f"user:{current_user.id}", max_requests=3, window_seconds=300, scope="stripe-approval-email")

    delivery, url = StripeAccountApprovalService(client).send_email(current_user, payload.approval_id, payload.dashboard_url)
    if not delivery.sent:
        logger.warning(f"Payment approval email for {payload.approval_id} not sent: {delivery.error}")
        return StripeApprovalEmailResponse(sent=False, message="Email could not be sent", dashboard_url=url)

    return StripeApprovalEmailResponse(sent=True, message="Email sent successfully", dashboard_url=url)


# -----------------------------------------------------
# GET /stripe-account-approvals  (parent dashboard)
# -----------------------------------------------------
@router.get("/stripe-account-approvals", response_model=list[StripeAccountApprovalRead], summary="Requests for this parent")
def list_approvals(
    pending: bool = Query(False, description="Only pending requests"),
    current_user: CurrentUser = Depends(requires_role(["parent"])),
    client=Depends(get_db),
):
    return StripeAccountApprovalService(client).list_for_parent(current_user, pending_only=pending)


# -----------------------------------------------------
# POST /stripe-account-approvals/{approval_id}/decision
# -----------------------------------------------------
@router.post(
    "/stripe-account-approvals/{approval_id}/decision",
    response_model=ApprovalActionResult,
    summary="Approve or reject a payment account",
)
def decide(
    approval_id: str,
    payload: ApprovalDecisionRequest,
    current_user: CurrentUser = Depends(requires_role(["parent"])),
    client=Depends(get_db),
):
    return StripeAccountApprovalService(client).decide(current_user, approval_id, payload.action, payload.reason)
