# models/approval.py

from typing import Any, Dict, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from core.utils import utcnow
from models.enums import ApprovalStatus, ApprovalAction


class PendingApprovalRecord(BaseModel):
    """
    One approval request, independent of the table it lives in.

    `status` is what the row says; callers should use effective_status(),
    which reports `expired` once `expires_at` has passed.
    """
    id: str
    token: Optional[str] = None
    owner_contact: Optional[str] = None
    status: ApprovalStatus = ApprovalStatus.pending

    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    payload: Dict[str, Any] = Field(default_factory=dict, description="Table-specific columns")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    def effective_status(self, now: Optional[datetime] = None) -> ApprovalStatus:
        if self.status == ApprovalStatus.pending and self.is_expired(now):
            return ApprovalStatus.expired
        return self.status

    def with_effective_status(self, now: Optional[datetime] = None) -> "PendingApprovalRecord":
        status = self.effective_status(now)
        if status == self.status:
            return self
        return self.model_copy(update={"status": status})

    @property
    def version(self) -> Optional[datetime]:
        """Monotonic row version; the database bumps updated_at on every write."""
        return self.updated_at


# --------------------------------------------------------------------
# ACTION HANDLER I/O
# --------------------------------------------------------------------
class ApprovalActionRequest(BaseModel):
    token: str
    action: ApprovalAction
    reason: Optional[str] = Field(None, max_length=500, description="Optional note, stored on reject")


class SideEffectReport(BaseModel):
    """Result of one piece of follow-up work after a status change."""
    name: str
    success: bool
    timed_out: bool = False
    error: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class ApprovalActionResult(BaseModel):
    success: bool = True
    status: ApprovalStatus
    already_processed: bool = False
    record_id: str
    full_name: Optional[str] = None
    parent_email: Optional[str] = None
    side_effects: list[SideEffectReport] = Field(default_factory=list)


class ApprovalStatusRead(BaseModel):
    """What status lookups return to the requester / link page."""
    id: str
    status: ApprovalStatus
    expires_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    full_name: Optional[str] = None
    rejection_reason: Optional[str] = None
    message: Optional[str] = None


class ApprovalDecisionRequest(BaseModel):
    """Body for dashboard decisions, where the record id is in the path."""
    action: ApprovalAction
    reason: Optional[str] = Field(None, max_length=500)
