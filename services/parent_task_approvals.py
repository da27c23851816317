# services/parent_task_approvals.py

from typing import List, Optional

from core.supabase_helpers import safe_select
from models.approval import ApprovalActionResult
from models.enums import ApprovalAction
from models.parent_approval import ParentTaskApprovalRead
from services.approval_store import PARENT_TASK_APPROVALS
from services.parent_decisions import ParentDecisions


def list_task_approvals(client, parent, pending_only: bool = False) -> List[ParentTaskApprovalRead]:
    """A parent's task approvals, newest first, with the task title attached."""
    records = ParentDecisions(PARENT_TASK_APPROVALS, client=client).for_parent(parent, pending_only=pending_only)

    titles = {}
    out = []
    for record in records:
        gig_id = record.payload.get("gig_id")
        if gig_id and gig_id not in titles:
            task = safe_select("tasks", {"id": gig_id}, single=True, client=client) or {}
            titles[gig_id] = task.get("title") or "Unknown Task"

        out.append(ParentTaskApprovalRead(
            id=record.id,
            teen_id=record.owner_contact,
            gig_id=gig_id,
            task_title=titles.get(gig_id, "Unknown Task"),
            parent_id=record.payload.get("parent_id"),
            status=record.status,
            reason=record.rejection_reason,
            created_at=record.created_at,
            updated_at=record.updated_at,
        ))
    return out


def decide_task_approval(client, parent, approval_id: str, action: ApprovalAction, reason: Optional[str] = None) -> ApprovalActionResult:
    return ParentDecisions(PARENT_TASK_APPROVALS, client=client).decide(parent, approval_id, action, reason)
