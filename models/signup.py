from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import date, datetime


# --------------------------------------------------------------------
# PUBLIC REQUEST BODY: teen asks for parental approval
# --------------------------------------------------------------------
class PendingTeenSignupCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=120)
    date_of_birth: date
    parent_email: EmailStr
    parent_phone: Optional[str] = None


# --------------------------------------------------------------------
# SUPABASE ROW → API RESPONSE
# The approval token is deliberately absent: only the parent's email
# carries it.
# --------------------------------------------------------------------
class PendingTeenSignupRead(BaseModel):
    id: str
    full_name: str
    parent_email: EmailStr
    status: str = "pending"     # pending, approved, rejected, expired
    token_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    email_sent: Optional[bool] = None
    existing: bool = False


class ResendApprovalEmailRequest(BaseModel):
    parent_email: EmailStr


# --------------------------------------------------------------------
# EMAIL SENDER BODIES
# --------------------------------------------------------------------
class SendParentApprovalEmailRequest(BaseModel):
    parent_email: EmailStr
    token: str
    teen_name: str
    teen_age: Optional[int] = None
    approval_url: Optional[str] = None


class SendParentAccountEmailRequest(BaseModel):
    parent_email: EmailStr
    teen_name: Optional[str] = None


class EmailSendResponse(BaseModel):
    """
    `success` means the request was handled; `sent` means the provider
    accepted the message. Callers retry on `sent=False` without touching
    any approval record.
    """
    success: bool = True
    sent: bool
    message: str
    approval_url: Optional[str] = None
