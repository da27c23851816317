# routers/parent_approvals.py

from fastapi import APIRouter, Depends, Query

from dependencies.auth import CurrentUser, requires_role
from dependencies.db import get_db
from models.approval import ApprovalActionResult, ApprovalDecisionRequest
from models.parent_approval import ParentTaskApprovalRead
from services.parent_task_approvals import decide_task_approval, list_task_approvals


router = APIRouter(tags=["Task Approval"])


# -----------------------------------------------------
# GET /parent-approvals
# -----------------------------------------------------
@router.get("/parent-approvals", response_model=list[ParentTaskApprovalRead], summary="Task approvals for this parent")
def list_approvals(
    pending: bool = Query(False, description="Only pending approvals"),
    current_user: CurrentUser = Depends(requires_role(["parent"])),
    client=Depends(get_db),
):
    return list_task_approvals(client, current_user, pending_only=pending)


# -----------------------------------------------------
# POST /parent-approvals/{approval_id}/decision
# -----------------------------------------------------
@router.post("/parent-approvals/{approval_id}/decision", response_model=ApprovalActionResult, summary="Approve or reject a task")
def decide(
    approval_id: str,
    payload: ApprovalDecisionRequest,
    current_user: CurrentUser = Depends(requires_role(["parent"])),
    client=Depends(get_db),
):
    return decide_task_approval(client, current_user, approval_id, payload.action, payload.reason)
