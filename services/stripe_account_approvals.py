# services/stripe_account_approvals.py

"""
Parent sign-off before a teen under 18 connects a payment account.

The teen asks; the linked parent is emailed a pointer to the parent
dashboard and decides there while signed in. There is one row per teen.
Asking again after a rejection re-opens that row instead of adding one.
"""

from typing import List, Optional, Tuple

from fastapi import HTTPException

from core.email_utils import parent_dashboard_url, send_stripe_account_approval_email
from core.errors import ConflictError, NotFoundError, PreconditionError, ValidationError
from core.logging_config import logger
from core.notifications import DeliveryResult
from core.supabase_helpers import safe_select
from models.approval import ApprovalActionResult, PendingApprovalRecord
from models.enums import ApprovalAction, ApprovalStatus, UserRole
from models.stripe_account_approval import StripeAccountApprovalRead
from services.approval_store import ApprovalStore, STRIPE_ACCOUNT_APPROVALS
from services.parent_decisions import ParentDecisions
from services.signups import teen_age


ADULT_AGE = 18


def to_read(record: PendingApprovalRecord, teen: Optional[dict] = None) -> StripeAccountApprovalRead:
    return StripeAccountApprovalRead(
        id=record.id,
        teen_id=record.owner_contact,
        parent_id=record.payload.get("parent_id"),
        status=record.status,
        reason=record.rejection_reason,
        created_at=record.created_at,
        updated_at=record.updated_at,
        teen_name=(teen.get("full_name") or "Unknown") if teen is not None else None,
        teen_email=(teen.get("email") or "") if teen is not None else None,
    )


class StripeAccountApprovalService:
    def __init__(self, client=None):
        self.client = client
        self.store = ApprovalStore(STRIPE_ACCOUNT_APPROVALS, client=client)
        self.decisions = ParentDecisions(STRIPE_ACCOUNT_APPROVALS, client=client)

    # -------------------------------------------------
    # Teen side
    # -------------------------------------------------
    def needs_approval(self, user) -> bool:
        """Teens with a linked parent who are under 18, or whose birthdate is unknown."""
        profile = safe_select("users", {"id": user.id}, single=True, client=self.client)
        if not profile:
            raise NotFoundError("User profile not found")

        if profile.get("role") != UserRole.teen.value or not profile.get("parent_id"):
            return False

        age = teen_age(profile.get("date_of_birth"))
        return age is None or age < ADULT_AGE

    def get_status(self, user) -> Optional[PendingApprovalRecord]:
        return self.store.fetch_by_contact(user.id)

    def request(self, user) -> Tuple[PendingApprovalRecord, Optional[bool]]:
        """
        Open (or re-open) the teen's request and email the parent.

        Returns the record and whether the email went out; None when the
        request was already approved and nothing was sent.
        """
        if user.role != UserRole.teen.value:
            raise PreconditionError("Only teens can request Stripe account approval")
        if not user.parent_id:
            raise ValidationError("No parent linked to account")

        existing = self.store.fetch_by_contact(user.id)

        if existing is None:
            record = self.store.create({"teen_id": user.id, "parent_id": user.parent_id})
            logger.info(f"Payment account approval {record.id} requested by teen {user.id}")
        elif existing.status == ApprovalStatus.approved:
            return existing, None
        elif existing.status == ApprovalStatus.pending:
            record = existing
        else:
            record = self.store.transition(
                existing,
                ApprovalStatus.pending,
                {STRIPE_ACCOUNT_APPROVALS.reason_column: None},
            )
            if record is None:
                raise ConflictError("This request is being processed, please try again")
            logger.info(f"Payment account approval {record.id} re-opened by teen {user.id}")

        return record, self._notify_parent(user.full_name, record)

    def send_email(self, user, approval_id: str, dashboard_url: Optional[str] = None) -> Tuple[DeliveryResult, str]:
        """Re-send the parent email for the caller's own pending request."""
        record = self.store.fetch_by_id(approval_id)
        if record is None or record.owner_contact != user.id:
            raise NotFoundError("Approval request not found")
        if record.status != ApprovalStatus.pending:
            raise ValidationError(f"This request is already {record.status}")

        url = dashboard_url or parent_dashboard_url()
        parent = self._parent_of(record)
        if not parent or not parent.get("email"):
            raise NotFoundError("Parent email not found")

        delivery = send_stripe_account_approval_email(parent["email"], user.full_name or "Your teen", url)
        return delivery, url

    # -------------------------------------------------
    # Parent side
    # -------------------------------------------------
    def list_for_parent(self, parent, pending_only: bool = False) -> List[StripeAccountApprovalRead]:
        records = self.decisions.for_parent(parent, pending_only=pending_only)
        teens = {}
        for record in records:
            if record.owner_contact not in teens:
                teens[record.owner_contact] = safe_select(
                    "users", {"id": record.owner_contact}, single=True, client=self.client
                ) or {}
        return [to_read(r, teens[r.owner_contact]) for r in records]

    def decide(self, parent, approval_id: str, action: ApprovalAction, reason: Optional[str] = None) -> ApprovalActionResult:
        return self.decisions.decide(parent, approval_id, action, reason)

    # -------------------------------------------------
    # Email
    # -------------------------------------------------
    def _parent_of(self, record: PendingApprovalRecord) -> Optional[dict]:
        parent_id = record.payload.get("parent_id")
        if not parent_id:
            return None
        return safe_select("users", {"id": parent_id}, single=True, client=self.client)

    def _notify_parent(self, teen_name: Optional[str], record: PendingApprovalRecord) -> bool:
        # The request stands even when the email does not go out
        try:
            parent = self._parent_of(record)
        except HTTPException as e:
            logger.warning(f"Parent lookup for payment approval {record.id} failed: {e.detail}")
            return False

        if not parent or not parent.get("email"):
            logger.warning(f"No parent email for payment approval {record.id}")
            return False

        delivery = send_stripe_account_approval_email(parent["email"], teen_name or "Your teen")
        if not delivery.sent:
            logger.warning(f"Payment approval email for {record.id} not sent: {delivery.error}")
        return delivery.sent
