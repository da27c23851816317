from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from models.enums import ApprovalStatus


# --------------------------------------------------------------------
# PAYMENT ACCOUNT APPROVAL (teen under 18 → parent dashboard)
# --------------------------------------------------------------------
class StripeAccountApprovalRead(BaseModel):
    id: str
    teen_id: str
    parent_id: Optional[str] = None
    status: ApprovalStatus
    reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # parent listing only
    teen_name: Optional[str] = None
    teen_email: Optional[str] = None


class StripeApprovalNeededResponse(BaseModel):
    needs_approval: bool


class StripeAccountApprovalRequestResponse(BaseModel):
    success: bool = True
    approval: StripeAccountApprovalRead
    email_sent: Optional[bool] = None     # None → no email attempted (already approved)


class SendStripeApprovalEmailRequest(BaseModel):
    approval_id: str
    dashboard_url: Optional[str] = None


class StripeApprovalEmailResponse(BaseModel):
    success: bool = True
    sent: bool
    message: str
    dashboard_url: str
