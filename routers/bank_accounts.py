# routers/bank_accounts.py

from fastapi import APIRouter, Depends, Request

from core.rate_limiter import require_rate_limit
from core.stripe_helpers import PaymentProvider
from dependencies.auth import CurrentUser, get_current_user, requires_role
from dependencies.db import get_db
from dependencies.payments import get_payment_provider
from models.bank_account import (
    BankAccountCreate,
    BankAccountCreateResponse,
    BankAccountRemovedResponse,
    BankAccountVerifyResponse,
    MicroDepositVerifyRequest,
    OtpApprovalStatus,
    OtpSendResponse,
    OtpVerifyRequest,
    OtpVerifyResponse,
)
from services.bank_accounts import (
    create_bank_account,
    delete_bank_account,
    resend_micro_deposits,
    verify_bank_account,
)
from services.bank_otp import BankApprovalOtpService


router = APIRouter(tags=["Bank Accounts"])


# -----------------------------------------------------
# POST /create-bank-account
# -----------------------------------------------------
@router.post("/create-bank-account", response_model=BankAccountCreateResponse, summary="Add a teen bank account")
def create_account(
    payload: BankAccountCreate,
    current_user: CurrentUser = Depends(get_current_user),
    provider: PaymentProvider = Depends(get_payment_provider),
    client=Depends(get_db),
):
    account = create_bank_account(client, current_user, payload, provider)
    return BankAccountCreateResponse(bank_account=account)


# -----------------------------------------------------
# POST /send-bank-account-approval-otp
# -----------------------------------------------------
@router.post("/send-bank-account-approval-otp", response_model=OtpSendResponse, summary="Text an approval code to the parent")
def send_approval_code(
    current_user: CurrentUser = Depends(get_current_user),
    client=Depends(get_db),
):
    return BankApprovalOtpService(client).request_code(current_user)


# -----------------------------------------------------
# POST /verify-bank-account-approval-otp
# -----------------------------------------------------
@router.post("/verify-bank-account-approval-otp", response_model=OtpVerifyResponse, summary="Verify the parent's code")
def verify_approval_code(
    payload: OtpVerifyRequest,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    client=Depends(get_db),
):
    require_rate_limit(request, identifier=f"user:{current_user.id}", max_requests=10, window_seconds=60, scope="otp-verify")
    return BankApprovalOtpService(client).verify_code(current_user, payload.otp_code)


# -----------------------------------------------------
# GET /bank-account-approval/status
# -----------------------------------------------------
@router.get("/bank-account-approval/status", response_model=OtpApprovalStatus, summary="Current code approval state")
def approval_status(
    current_user: CurrentUser = Depends(requires_role(["teen"])),
    client=Depends(get_db),
):
    return BankApprovalOtpService(client).get_status(current_user)


# -----------------------------------------------------
# POST /verify-bank-account
# Micro-deposit amounts
# -----------------------------------------------------
@router.post("/verify-bank-account", response_model=BankAccountVerifyResponse, summary="Verify micro-deposit amounts")
def verify_account(
    payload: MicroDepositVerifyRequest,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    provider: PaymentProvider = Depends(get_payment_provider),
    client=Depends(get_db),
):
    require_rate_limit(request, identifier=f"user:{current_user.id}", max_requests=5, window_seconds=60, scope="verify-bank-account")
    return verify_bank_account(client, current_user, payload.amount1, payload.amount2, provider)


# -----------------------------------------------------
# POST /resend-micro-deposits
# -----------------------------------------------------
@router.post("/resend-micro-deposits", response_model=BankAccountRemovedResponse, summary="Start micro-deposits over")
def resend_deposits(
    current_user: CurrentUser = Depends(get_current_user),
    provider: PaymentProvider = Depends(get_payment_provider),
    client=Depends(get_db),
):
    return resend_micro_deposits(client, current_user, provider)


# -----------------------------------------------------
# POST /delete-bank-account
# -----------------------------------------------------
@router.post("/delete-bank-account", response_model=BankAccountRemovedResponse, summary="Remove the teen's bank account")
def delete_account(
    current_user: CurrentUser = Depends(get_current_user),
    provider: PaymentProvider = Depends(get_payment_provider),
    client=Depends(get_db),
):
    return delete_bank_account(client, current_user, provider)
