from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from models.enums import ApprovalStatus


# --------------------------------------------------------------------
# TASK APPROVAL (teen wants to take a gig)
# --------------------------------------------------------------------
class ParentTaskApprovalRead(BaseModel):
    id: str
    teen_id: str
    gig_id: Optional[str] = None
    task_title: str = "Unknown Task"
    parent_id: Optional[str] = None
    status: ApprovalStatus
    reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
