# services/parent_decisions.py

"""
Approvals a signed-in parent decides from the dashboard.

Rows carry the deciding parent's id in `parent_id`; a parent only ever
sees or decides their own rows. Someone else's row reads as not found.
"""

from typing import List, Optional

from core.errors import NotFoundError, PreconditionError
from models.approval import ApprovalActionResult, PendingApprovalRecord
from models.enums import ApprovalAction, ApprovalStatus, UserRole
from services.approval_actions import ApprovalActionHandler
from services.approval_store import ApprovalStore, ApprovalTable


class ParentDecisions:
    def __init__(self, table: ApprovalTable, client=None, on_approve=(), on_reject=()):
        self.store = ApprovalStore(table, client=client)
        self.handler = ApprovalActionHandler(
            self.store,
            on_approve=on_approve,
            on_reject=on_reject,
            summarize=lambda record: {},
        )

    def for_parent(self, parent, pending_only: bool = False) -> List[PendingApprovalRecord]:
        _require_parent(parent)
        records = self.store.fetch_all({"parent_id": parent.id})
        if pending_only:
            records = [r for r in records if r.status == ApprovalStatus.pending]
        return records

    def get(self, parent, record_id: str) -> PendingApprovalRecord:
        _require_parent(parent)
        record = self.store.fetch_by_id(record_id)
        if record is None or record.payload.get("parent_id") != parent.id:
            raise NotFoundError("Approval request not found")
        return record

    def decide(self, parent, record_id: str, action: ApprovalAction, reason: Optional[str] = None) -> ApprovalActionResult:
        return self.handler.decide(self.get(parent, record_id), action, reason)


def _require_parent(user):
    if user.role != UserRole.parent.value:
        raise PreconditionError("Only parents can review approval requests")
