# services/bank_otp.py

"""
Parent approval for a teen's bank account, by SMS code.

The parent receives a 6-digit code and reads it to the teen, who enters
it in the app. One approval row per teen (bank_account_approvals.teen_id
is unique); requesting a new code starts a fresh cycle on that row.

    service = BankApprovalOtpService(client)
    service.request_code(user)
    service.verify_code(user, "123456")
"""

import hashlib
import hmac
import re
import secrets
from datetime import timedelta
from typing import Callable, Optional

from core.config import settings
from core.errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    PreconditionError,
    ProviderError,
    RateLimitedError,
    ValidationError,
)
from core.logging_config import logger, mask_phone
from core.notifications import send_sms, DeliveryResult
from core.supabase_helpers import safe_select, safe_upsert, safe_update
from core.utils import normalize_phone, parse_timestamp, utcnow
from models.bank_account import OtpApprovalStatus, OtpSendResponse, OtpVerifyResponse
from models.enums import ApprovalStatus, UserRole
from services.approval_store import ApprovalStore, BANK_ACCOUNT_APPROVALS


CODE_DIGITS = 6


def generate_code() -> str:
    """Uniformly random 6-digit code, zero-padded."""
    return f"{secrets.randbelow(10 ** CODE_DIGITS):0{CODE_DIGITS}d}"


def hash_code(teen_id: str, code: str) -> str:
    return hashlib.sha256(f"{teen_id}:{code}".encode()).hexdigest()


def clean_code(raw) -> str:
    return re.sub(r"\D", "", str(raw if raw is not None else ""))


class BankApprovalOtpService:
    def __init__(
        self,
        client,
        sms_sender: Callable[[str, str], DeliveryResult] = None,
        clock: Callable = utcnow,
    ):
        self.client = client
        self.store = ApprovalStore(BANK_ACCOUNT_APPROVALS, client=client)
        self.sms_sender = sms_sender or send_sms
        self.clock = clock

    @property
    def max_attempts(self) -> int:
        return settings.OTP_MAX_ATTEMPTS

    # -------------------------------------------------
    # Request a code
    # -------------------------------------------------
    def request_code(self, user) -> OtpSendResponse:
        _require_teen(user, "Only teens can request bank account approval")

        if not user.parent_id:
            raise ValidationError("No parent associated with this account")

        parent = safe_select("users", {"id": user.parent_id}, single=True, client=self.client)
        if not parent:
            raise NotFoundError("Parent profile not found")

        parent_phone = normalize_phone(parent.get("phone"))
        if not parent_phone:
            raise ValidationError("Parent phone number not found. Please ask your parent to add a phone number.")

        now = self.clock()
        existing = self.store.fetch_by_contact(user.id)
        if existing is not None:
            if existing.status == ApprovalStatus.approved:
                raise ConflictError("Your parent has already approved your bank account")

            if existing.status == ApprovalStatus.pending and not existing.is_expired(now):
                sent_at = parse_timestamp(existing.payload.get("sent_at")) or existing.created_at
                if sent_at:
                    wait = settings.OTP_RESEND_COOLDOWN_SECONDS - int((now - sent_at).total_seconds())
                    if wait > 0:
                        raise RateLimitedError(
                            f"Please wait {wait} seconds before requesting a new code.",
                            retry_after=wait,
                        )

        code = generate_code()
        expires_at = now + timedelta(minutes=settings.OTP_TTL_MINUTES)

        row = safe_upsert(
            "bank_account_approvals",
            {
                "teen_id": user.id,
                "parent_id": user.parent_id,
                "parent_phone": parent_phone,
                "otp_code": hash_code(user.id, code),
                "status": ApprovalStatus.pending,
                "attempts": 0,
                "sent_at": now,
                "expires_at": expires_at,
                "verified_at": None,
            },
            on_conflict="teen_id",
            client=self.client,
        )

        teen_name = user.full_name or "Your teen"
        body = (
            f"Ollie: {teen_name} wants to add a bank account for payouts. "
            f"Share this code with them to approve: {code}. "
            f"It expires in {settings.OTP_TTL_MINUTES} minutes."
        )
        result = self.sms_sender(parent_phone, body)

        if not result.sent:
            logger.error(f"Approval code SMS to {mask_phone(parent_phone)} failed: {result.error}")
            if row:
                # Free the cooldown so the teen can retry right away
                safe_update("bank_account_approvals", {"id": row["id"]}, {"status": ApprovalStatus.expired}, client=self.client)
            raise ProviderError({
                "message": "We couldn't text your parent. Please try again.",
                "record_updated": bool(row),
            })

        logger.info(f"Approval code sent to parent of teen {user.id} ({mask_phone(parent_phone)})")
        return OtpSendResponse(
            message="Code sent to your parent's phone",
            expires_at=expires_at,
            parent_phone_masked=mask_phone(parent_phone),
        )

    # -------------------------------------------------
    # Verify a code
    # -------------------------------------------------
    def verify_code(self, user, raw_code) -> OtpVerifyResponse:
        code = clean_code(raw_code)
        if len(code) != CODE_DIGITS:
            raise ValidationError("Code must be 6 digits")

        _require_teen(user, "Only teens can verify bank account approval")

        # Retried only when another verify for the same teen changed the row first
        for _ in range(3):
            record = self.store.fetch_by_contact(user.id)
            if record is None:
                raise NotFoundError("No approval request found. Please request a new code.")

            if record.status == ApprovalStatus.approved:
                return OtpVerifyResponse(
                    message="Bank account already approved",
                    verified_at=parse_timestamp(record.payload.get("verified_at")),
                )

            if record.status == ApprovalStatus.expired:
                raise ExpiredError("Code has expired. Please request a new code.")

            attempts = int(record.payload.get("attempts") or 0)
            if record.status == ApprovalStatus.blocked or attempts >= self.max_attempts:
                if record.status == ApprovalStatus.pending:
                    self.store.transition(record, ApprovalStatus.blocked)
                raise RateLimitedError({
                    "message": "Maximum verification attempts reached. Please request a new code.",
                    "max_attempts_reached": True,
                })

            stored_hash = record.payload.get("otp_code") or ""
            if hmac.compare_digest(hash_code(user.id, code), stored_hash):
                now = self.clock()
                updated = self.store.transition(
                    record,
                    ApprovalStatus.approved,
                    {"verified_at": now, "attempts": attempts + 1},
                    expected={"attempts": attempts},
                )
                if updated is None:
                    continue
                logger.info(f"Bank account approval granted for teen {user.id}")
                return OtpVerifyResponse(message="Bank account approved", verified_at=now)

            new_attempts = attempts + 1
            remaining = max(self.max_attempts - new_attempts, 0)
            data = {"attempts": new_attempts}
            if remaining == 0:
                updated = self.store.transition(record, ApprovalStatus.blocked, data, expected={"attempts": attempts})
            else:
                updated = self.store.update_fields(record, data, expected={"attempts": attempts})
            if updated is None:
                continue

            logger.info(f"Wrong approval code for teen {user.id} ({new_attempts}/{self.max_attempts})")
            raise ValidationError({
                "message": "Invalid code",
                "remaining_attempts": remaining,
                "max_attempts_reached": remaining == 0,
            })

        raise ConflictError("Verification is already in progress, please try again")

    # -------------------------------------------------
    # Status
    # -------------------------------------------------
    def get_status(self, user) -> OtpApprovalStatus:
        record = self.store.fetch_by_contact(user.id)
        if record is None:
            return OtpApprovalStatus()

        attempts = int(record.payload.get("attempts") or 0)
        remaining = 0
        if record.status == ApprovalStatus.pending:
            remaining = max(self.max_attempts - attempts, 0)

        return OtpApprovalStatus(
            status=record.status,
            expires_at=record.expires_at,
            attempts=attempts,
            remaining_attempts=remaining,
            verified_at=parse_timestamp(record.payload.get("verified_at")),
            parent_phone_masked=mask_phone(record.payload.get("parent_phone") or "") or None,
        )

    def current_status(self, teen_id: str) -> Optional[ApprovalStatus]:
        """Current status for `teen_id`, or None if never requested."""
        record = self.store.fetch_by_contact(teen_id)
        return record.status if record else None


def _require_teen(user, message: str):
    if user.role != UserRole.teen.value:
        raise PreconditionError(message)
