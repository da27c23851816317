# services/approval_store.py

"""
Read/transition access to approval rows stored in Supabase.

Each approval flow keeps its rows in its own table with its own column
names; ApprovalTable maps those columns onto PendingApprovalRecord so
the fetcher, the action handler and the status watchers work on one
shape.

Two rules are enforced here rather than by callers:
  • read-time expiry: a pending row past its expiry is reported as
    `expired` (and persisted as such, best-effort)
  • status changes are compare-and-swap on the current status, so two
    concurrent writers cannot both move a row out of `pending`
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from pydantic import BaseModel

from core.logging_config import logger
from core.errors import ProviderError
from core.supabase_helpers import safe_select, safe_insert, compare_and_set
from core.utils import parse_timestamp, utcnow
from models.approval import PendingApprovalRecord
from models.enums import ApprovalStatus


class ApprovalTable(BaseModel):
    """Column mapping for one approval table."""
    name: str
    expires_column: Optional[str] = None
    token_column: Optional[str] = None
    contact_column: Optional[str] = None
    id_column: str = "id"
    status_column: str = "status"
    created_column: str = "created_at"
    updated_column: str = "updated_at"
    reason_column: str = "rejection_reason"
    # False for tables without approved_at / rejected_at columns
    decision_timestamps: bool = True

    model_config = {"frozen": True}

    def to_record(self, row: Dict[str, Any]) -> PendingApprovalRecord:
        known = {
            self.id_column, self.status_column, self.created_column,
            self.updated_column, self.reason_column,
            "approved_at", "rejected_at",
        }
        for column in (self.token_column, self.expires_column):
            if column:
                known.add(column)

        return PendingApprovalRecord(
            id=str(row[self.id_column]),
            token=row.get(self.token_column) if self.token_column else None,
            owner_contact=row.get(self.contact_column) if self.contact_column else None,
            status=ApprovalStatus(row.get(self.status_column) or "pending"),
            created_at=parse_timestamp(row.get(self.created_column)),
            expires_at=parse_timestamp(row.get(self.expires_column)) if self.expires_column else None,
            updated_at=parse_timestamp(row.get(self.updated_column)),
            approved_at=parse_timestamp(row.get("approved_at")),
            rejected_at=parse_timestamp(row.get("rejected_at")),
            rejection_reason=row.get(self.reason_column),
            payload={k: v for k, v in row.items() if k not in known},
        )


# -----------------------------------------------------
# Tables used by the app
# -----------------------------------------------------
TEEN_SIGNUPS = ApprovalTable(
    name="pending_teen_signups",
    token_column="approval_token",
    contact_column="parent_email",
    expires_column="token_expires_at",
)

BANK_ACCOUNT_APPROVALS = ApprovalTable(
    name="bank_account_approvals",
    contact_column="teen_id",
    expires_column="expires_at",
)

STRIPE_ACCOUNT_APPROVALS = ApprovalTable(
    name="stripe_account_approvals",
    contact_column="teen_id",
    reason_column="reason",
    decision_timestamps=False,
)

PARENT_TASK_APPROVALS = ApprovalTable(
    name="parent_approvals",
    contact_column="teen_id",
    reason_column="reason",
    decision_timestamps=False,
)

NEIGHBOR_APPLICATIONS = ApprovalTable(
    name="pending_neighbor_applications",
    contact_column="user_id",
    decision_timestamps=False,
)


class ApprovalStore:
    """StatusFetcher + transition primitive for one ApprovalTable."""

    def __init__(self, table: ApprovalTable, client=None):
        self.table = table
        self.client = client

    # -------------------------------------------------
    # Reads
    # -------------------------------------------------
    def fetch_by_token(self, token: str) -> Optional[PendingApprovalRecord]:
        if not self.table.token_column:
            raise ValueError(f"{self.table.name} has no token column")
        return self._fetch_one({self.table.token_column: token})

    def fetch_by_id(self, record_id: str) -> Optional[PendingApprovalRecord]:
        return self._fetch_one({self.table.id_column: record_id})

    def fetch_by_contact(self, contact: str, extra_filters: Optional[dict] = None) -> Optional[PendingApprovalRecord]:
        """Most recent record for this contact, any status."""
        if not self.table.contact_column:
            raise ValueError(f"{self.table.name} has no contact column")
        filters = {self.table.contact_column: contact, **(extra_filters or {})}
        return self._fetch_one(filters, order_by=self.table.created_column)

    def fetch_all(self, filters: dict) -> List[PendingApprovalRecord]:
        """Every matching record, newest first, with read-time expiry applied."""
        rows = safe_select(self.table.name, filters, order_by=self.table.created_column, client=self.client) or []
        return [self.table.to_record(row).with_effective_status() for row in rows]

    def fetch_row(self, filters: dict, order_by: Optional[str] = None) -> Optional[dict]:
        return safe_select(self.table.name, filters, single=True, order_by=order_by, client=self.client)

    def _fetch_one(self, filters: dict, order_by: Optional[str] = None) -> Optional[PendingApprovalRecord]:
        row = self.fetch_row(filters, order_by=order_by)
        if not row:
            return None
        return self._apply_expiry(self.table.to_record(row))

    def _apply_expiry(self, record: PendingApprovalRecord) -> PendingApprovalRecord:
        effective = record.with_effective_status()
        if effective.status != record.status:
            # Best-effort; readers already see expired either way
            try:
                self.transition(record, ApprovalStatus.expired)
            except HTTPException as e:
                logger.warning(f"Could not mark {self.table.name}/{record.id} expired: {e.detail}")
        return effective

    # -------------------------------------------------
    # Writes
    # -------------------------------------------------
    def create(self, data: dict) -> PendingApprovalRecord:
        row = safe_insert(self.table.name, {**data, self.table.status_column: ApprovalStatus.pending.value}, client=self.client)
        if not row:
            raise ProviderError(f"Failed to create {self.table.name} record")
        return self.table.to_record(row)

    def transition(
        self,
        record: PendingApprovalRecord,
        new_status: ApprovalStatus,
        data: Optional[dict] = None,
        expected: Optional[dict] = None,
    ) -> Optional[PendingApprovalRecord]:
        """
        Move `record` from its stored status to `new_status`.

        Returns the updated record, or None when the row no longer had the
        expected status (someone else changed it first).
        """
        guard = {self.table.status_column: record.status.value}
        if expected:
            guard.update(expected)

        row = compare_and_set(
            self.table.name,
            {self.table.id_column: record.id},
            guard,
            {**(data or {}), self.table.status_column: new_status.value},
            client=self.client,
        )
        if not row:
            logger.info(
                f"{self.table.name}/{record.id}: {record.status} → {new_status} lost to a concurrent update"
            )
            return None
        return self.table.to_record(row)

    def update_fields(self, record: PendingApprovalRecord, data: dict, expected: Optional[dict] = None) -> Optional[PendingApprovalRecord]:
        """Conditional update that leaves the status untouched."""
        guard = {self.table.status_column: record.status.value, **(expected or {})}
        row = compare_and_set(
            self.table.name,
            {self.table.id_column: record.id},
            guard,
            data,
            client=self.client,
        )
        return self.table.to_record(row) if row else None


def stamp() -> str:
    """ISO timestamp for approved_at / rejected_at / verified_at columns."""
    return utcnow().isoformat()
