# services/bank_accounts.py

import math
import re
from typing import List, Optional

from fastapi import HTTPException

from core.errors import ConflictError, NotFoundError, PreconditionError, ProviderError, ValidationError
from core.logging_config import logger
from core.stripe_helpers import PaymentProvider, map_bank_verification_status
from core.supabase_helpers import safe_delete, safe_insert, safe_select, safe_update
from core.utils import utcnow
from models.bank_account import (
    BankAccountCreate,
    BankAccountRead,
    BankAccountRemovedResponse,
    BankAccountVerifyResponse,
)
from models.enums import ApprovalStatus, BankAccountType, BankVerificationStatus, UserRole
from services.approval_store import ApprovalStore, BANK_ACCOUNT_APPROVALS


ROUTING_RE = re.compile(r"^\d{9}$")
ACCOUNT_RE = re.compile(r"^\d{4,17}$")

REQUIRED_FIELDS = ("routing_number", "account_number", "account_type", "account_holder_name")


# -----------------------------------------------------
# Validation (runs before any external call)
# -----------------------------------------------------
def validate_bank_account(payload: BankAccountCreate) -> BankAccountCreate:
    data = {k: (v or "").strip() for k, v in payload.model_dump().items()}

    missing = [f for f in REQUIRED_FIELDS if not data.get(f)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    if not ROUTING_RE.match(data["routing_number"]):
        raise ValidationError("Routing number must be exactly 9 digits")

    if not ACCOUNT_RE.match(data["account_number"]):
        raise ValidationError("Account number must be between 4 and 17 digits")

    if data["account_type"] not in BankAccountType.list():
        raise ValidationError('Account type must be "checking" or "savings"')

    return BankAccountCreate(**data)


def _existing_customer_id(client, user_id: str) -> Optional[str]:
    for table in ("bank_accounts", "payment_methods"):
        row = safe_select(table, {"user_id": user_id}, single=True, client=client)
        if row and row.get("stripe_customer_id"):
            return row["stripe_customer_id"]
    return None


# -----------------------------------------------------
# Create
# -----------------------------------------------------
def create_bank_account(client, user, payload: BankAccountCreate, provider: PaymentProvider) -> BankAccountRead:
    """
    Attach a US bank account to the teen's Stripe customer and store it.

    Only the last four digits of the account and routing numbers are
    persisted. If the database write fails, the Stripe source is removed
    again so the two never disagree.
    """
    account = validate_bank_account(payload)

    if user.role != UserRole.teen.value:
        raise PreconditionError("Only teens can add bank accounts")

    existing = safe_select("bank_accounts", {"user_id": user.id}, single=True, client=client)
    if existing:
        raise ConflictError({
            "message": "Bank account already exists",
            "existing_account_id": existing["id"],
            "verification_status": existing.get("verification_status"),
        })

    if user.parent_id:
        approval = ApprovalStore(BANK_ACCOUNT_APPROVALS, client=client).fetch_by_contact(user.id)
        if approval is None or approval.status != ApprovalStatus.approved:
            raise PreconditionError({
                "message": "Parent approval required. Please request and complete parent approval first.",
                "approval_status": approval.status.value if approval else "none",
            })

    customer_id = _existing_customer_id(client, user.id)
    if not customer_id:
        if not user.email:
            raise ProviderError("Failed to get or create Stripe customer")
        customer_id = provider.find_or_create_customer(user.email, user.id, role=UserRole.teen.value)

    external = provider.create_bank_account(
        customer_id,
        routing_number=account.routing_number,
        account_number=account.account_number,
        account_holder_name=account.account_holder_name,
        account_type=account.account_type,
        user_id=user.id,
    )

    verification_status = map_bank_verification_status(external.status)

    try:
        saved = safe_insert(
            "bank_accounts",
            {
                "user_id": user.id,
                "stripe_external_account_id": external.id,
                "stripe_customer_id": customer_id,
                "account_type": account.account_type,
                "account_holder_name": account.account_holder_name,
                "bank_name": external.bank_name,
                "routing_number_last4": account.routing_number[-4:],
                "account_number_last4": account.account_number[-4:],
                "verification_status": verification_status,
                "verification_method": "microdeposits",
                "is_default": True,
                "verified_at": utcnow() if verification_status == BankVerificationStatus.verified.value else None,
            },
            client=client,
        )
    except HTTPException:
        logger.error(f"Saving bank account for {user.id} failed, removing Stripe source {external.id}")
        try:
            provider.delete_bank_account(customer_id, external.id)
        except ProviderError:
            logger.warning(f"Stripe source {external.id} left behind for {user.id}")
        raise

    if not saved:
        raise ProviderError("Failed to save bank account")

    logger.info(f"Bank account {saved['id']} added for teen {user.id} ({verification_status})")

    return BankAccountRead(
        id=str(saved["id"]),
        verification_status=verification_status,
        bank_name=saved.get("bank_name"),
        account_type=account.account_type,
        account_number_last4=account.account_number[-4:],
        routing_number_last4=account.routing_number[-4:],
        requires_verification=verification_status == BankVerificationStatus.pending.value,
    )


# -----------------------------------------------------
# Micro-deposit verification
# -----------------------------------------------------
def parse_deposit_amounts(amount1, amount2) -> List[int]:
    """Two distinct dollar amounts between $0.01 and $0.99 → cents."""
    if amount1 in (None, "") or amount2 in (None, ""):
        raise ValidationError("Missing required fields: amount1 and amount2")

    try:
        amounts = [float(amount1), float(amount2)]
    except (TypeError, ValueError):
        raise ValidationError("Invalid amount format. Please enter valid numbers (e.g., 0.32)")

    if any(math.isnan(a) or a <= 0 or a >= 1 for a in amounts):
        raise ValidationError("Amounts must be between $0.01 and $0.99")

    cents = [round(a * 100) for a in amounts]
    if cents[0] == cents[1]:
        raise ValidationError("Amounts must be different")
    return cents


def _teen_bank_account(client, user, action: str, missing: str = "Bank account not found") -> dict:
    if user.role != UserRole.teen.value:
        raise PreconditionError(f"Only teens can {action}")

    account = safe_select("bank_accounts", {"user_id": user.id}, single=True, client=client)
    if not account:
        raise NotFoundError(missing)
    return account


def _account_read(row: dict, verification_status: str) -> BankAccountRead:
    return BankAccountRead(
        id=str(row["id"]),
        verification_status=verification_status,
        bank_name=row.get("bank_name"),
        account_type=row.get("account_type") or BankAccountType.checking.value,
        account_number_last4=row.get("account_number_last4") or "",
        routing_number_last4=row.get("routing_number_last4") or "",
        requires_verification=verification_status == BankVerificationStatus.pending.value,
    )


def verify_bank_account(client, user, amount1, amount2, provider: PaymentProvider) -> BankAccountVerifyResponse:
    """
    Confirm the micro-deposit amounts with Stripe and mark the stored
    account verified.

    Amounts that Stripe rejects mark the account `failed`; the teen has to
    add it again (see resend_micro_deposits). A still-unverified answer
    from Stripe leaves it `pending`.
    """
    amounts = parse_deposit_amounts(amount1, amount2)
    account = _teen_bank_account(
        client, user, "verify bank accounts",
        missing="Bank account not found. Please add a bank account first.",
    )

    status = account.get("verification_status")
    if status == BankVerificationStatus.verified.value:
        return BankAccountVerifyResponse(
            message="Bank account is already verified",
            verified_at=account.get("verified_at"),
        )
    if status == BankVerificationStatus.failed.value:
        raise ValidationError({
            "message": "Bank account verification has failed. Please add a new bank account.",
            "verification_status": BankVerificationStatus.failed.value,
        })

    try:
        external = provider.verify_bank_account(
            account["stripe_customer_id"],
            account["stripe_external_account_id"],
            amounts,
        )
    except ValidationError:
        safe_update(
            "bank_accounts",
            {"id": account["id"]},
            {"verification_status": BankVerificationStatus.failed.value},
            client=client,
        )
        logger.info(f"Bank account {account['id']} failed micro-deposit verification")
        raise

    if map_bank_verification_status(external.status) != BankVerificationStatus.verified.value:
        safe_update(
            "bank_accounts",
            {"id": account["id"]},
            {"verification_status": BankVerificationStatus.pending.value},
            client=client,
        )
        raise ValidationError({
            "message": "Verification is still pending. Please check the amounts and try again.",
            "verification_status": BankVerificationStatus.pending.value,
        })

    verified_at = utcnow()
    updated = safe_update(
        "bank_accounts",
        {"id": account["id"]},
        {"verification_status": BankVerificationStatus.verified.value, "verified_at": verified_at},
        client=client,
    )
    if not updated:
        raise ProviderError("Failed to update verification status")

    logger.info(f"Bank account {account['id']} verified for teen {user.id}")

    return BankAccountVerifyResponse(
        message="Bank account verified successfully",
        verified_at=verified_at,
        bank_account=_account_read(updated, BankVerificationStatus.verified.value),
    )


# -----------------------------------------------------
# Removal
# -----------------------------------------------------
def _remove_account(client, user, account: dict, provider: PaymentProvider, customer_id: Optional[str]):
    if not provider.configured:
        raise ProviderError("Stripe not configured")

    external_id = account.get("stripe_external_account_id")
    if customer_id and external_id:
        try:
            provider.delete_bank_account(customer_id, external_id)
        except ProviderError:
            # Local row is removed even when Stripe refuses
            logger.warning(f"Stripe source {external_id} for {user.id} could not be removed")

    safe_delete("bank_accounts", {"id": account["id"]}, client=client)
    logger.info(f"Bank account {account['id']} removed for teen {user.id}")


def resend_micro_deposits(client, user, provider: PaymentProvider) -> BankAccountRemovedResponse:
    """
    Stripe cannot re-send deposits for an existing source, so the account
    is removed and the teen adds it again, which triggers new deposits.
    """
    account = _teen_bank_account(
        client, user, "resend micro-deposits",
        missing="Bank account not found. Please add a bank account first.",
    )

    status = account.get("verification_status")
    if status == BankVerificationStatus.verified.value:
        raise ValidationError({
            "message": "Bank account is already verified. No need to resend deposits.",
            "verification_status": status,
        })
    if status not in (BankVerificationStatus.pending.value, BankVerificationStatus.failed.value):
        raise ValidationError({
            "message": "Cannot resend deposits for this bank account status",
            "verification_status": status,
        })

    customer_id = account.get("stripe_customer_id")
    if not customer_id and provider.configured and user.email:
        customer_id = provider.find_or_create_customer(user.email, user.id, role=UserRole.teen.value)

    _remove_account(client, user, account, provider, customer_id)

    return BankAccountRemovedResponse(
        message="Your bank account has been removed. You can now add it again with the same details "
                "to receive new verification deposits.",
    )


def delete_bank_account(client, user, provider: PaymentProvider) -> BankAccountRemovedResponse:
    account = _teen_bank_account(client, user, "delete bank accounts")
    _remove_account(client, user, account, provider, account.get("stripe_customer_id"))
    return BankAccountRemovedResponse(message="Bank account deleted successfully")
