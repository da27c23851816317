from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from models.enums import ApprovalStatus


class NeighborApplicationRead(BaseModel):
    id: str
    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    status: ApprovalStatus
    phone_verified: bool = False
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None


class NeighborRejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class NeighborReviewResult(BaseModel):
    success: bool = True
    application: NeighborApplicationRead
    email_sent: Optional[bool] = None
