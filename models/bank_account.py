# models/bank_account.py

from typing import Optional, Union
from datetime import datetime
from pydantic import BaseModel, Field

from models.enums import ApprovalStatus


class BankAccountCreate(BaseModel):
    """
    Raw body for /create-bank-account. Format checks happen in
    services.bank_accounts so failures come back as 400s with
    field-specific messages.
    """
    routing_number: Optional[str] = None
    account_number: Optional[str] = None
    account_type: Optional[str] = None
    account_holder_name: Optional[str] = None


class BankAccountRead(BaseModel):
    id: str
    verification_status: str
    bank_name: Optional[str] = None
    account_type: str
    account_number_last4: str
    routing_number_last4: str
    requires_verification: bool


class BankAccountCreateResponse(BaseModel):
    success: bool = True
    bank_account: BankAccountRead


# --------------------------------------------------------------------
# PARENT APPROVAL BY SMS CODE
# --------------------------------------------------------------------
class OtpVerifyRequest(BaseModel):
    otp_code: Union[str, int] = Field(..., description="6-digit code the parent received by SMS")


class OtpSendResponse(BaseModel):
    success: bool = True
    message: str
    expires_at: datetime
    parent_phone_masked: str


class OtpVerifyResponse(BaseModel):
    success: bool = True
    approved: bool = True
    message: str
    verified_at: Optional[datetime] = None


class OtpApprovalStatus(BaseModel):
    status: Optional[ApprovalStatus] = None     # None → never requested
    expires_at: Optional[datetime] = None
    attempts: int = 0
    remaining_attempts: int = 0
    verified_at: Optional[datetime] = None
    parent_phone_masked: Optional[str] = None


# --------------------------------------------------------------------
# MICRO-DEPOSIT VERIFICATION
# --------------------------------------------------------------------
class MicroDepositVerifyRequest(BaseModel):
    """Dollar amounts of the two deposits, e.g. "0.32". Checked in services.bank_accounts."""
    amount1: Optional[Union[str, float]] = None
    amount2: Optional[Union[str, float]] = None


class BankAccountVerifyResponse(BaseModel):
    success: bool = True
    verified: bool = True
    message: str
    verified_at: Optional[datetime] = None
    bank_account: Optional[BankAccountRead] = None


class BankAccountRemovedResponse(BaseModel):
    success: bool = True
    message: str
    deleted: bool = True
