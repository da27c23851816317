# services/neighbor_applications.py

"""
Admin review of neighbor applications.

Approving activates the applicant's profile. If that write fails the
application goes back to pending, so an approved application always has
an active profile behind it.
"""

from typing import List, Optional

from fastapi import HTTPException

from core.email_utils import send_neighbor_approval_email
from core.errors import ConflictError, NotFoundError, PreconditionError
from core.logging_config import logger
from core.supabase_helpers import safe_upsert
from models.approval import PendingApprovalRecord
from models.enums import ApprovalStatus, UserRole
from models.neighbor_application import NeighborApplicationRead, NeighborReviewResult
from services.approval_store import ApprovalStore, NEIGHBOR_APPLICATIONS, stamp


def to_read(record: PendingApprovalRecord) -> NeighborApplicationRead:
    data = record.payload
    return NeighborApplicationRead(
        id=record.id,
        user_id=record.owner_contact,
        email=data.get("email"),
        full_name=data.get("full_name"),
        phone=data.get("phone"),
        status=record.status,
        phone_verified=bool(data.get("phone_verified")),
        reviewed_by=data.get("reviewed_by"),
        reviewed_at=data.get("reviewed_at"),
        rejection_reason=record.rejection_reason,
        created_at=record.created_at,
    )


class NeighborApplicationReview:
    def __init__(self, client=None):
        self.client = client
        self.store = ApprovalStore(NEIGHBOR_APPLICATIONS, client=client)

    def pending(self, admin) -> List[NeighborApplicationRead]:
        _require_admin(admin)
        records = self.store.fetch_all({NEIGHBOR_APPLICATIONS.status_column: ApprovalStatus.pending.value})
        return [to_read(r) for r in records]

    def approve(self, admin, application_id: str) -> NeighborReviewResult:
        record = self._pending(admin, application_id)

        approved = self.store.transition(
            record,
            ApprovalStatus.approved,
            {"reviewed_by": admin.id, "reviewed_at": stamp()},
        )
        if approved is None:
            raise ConflictError("Application is already being reviewed")

        data = approved.payload
        try:
            safe_upsert(
                "users",
                {
                    "id": approved.owner_contact,
                    "email": data.get("email"),
                    "full_name": data.get("full_name"),
                    "phone": data.get("phone"),
                    "address": data.get("address"),
                    "date_of_birth": data.get("date_of_birth"),
                    "role": UserRole.neighbor.value,
                    "verified": True,
                    "application_status": "active",
                },
                on_conflict="id",
                client=self.client,
            )
        except HTTPException:
            logger.error(f"Activating profile for application {approved.id} failed, returning it to pending")
            self.store.transition(
                approved,
                ApprovalStatus.pending,
                {"reviewed_by": None, "reviewed_at": None},
            )
            raise

        logger.info(f"Neighbor application {approved.id} approved by {admin.id}")

        email_sent = None
        if data.get("email"):
            delivery = send_neighbor_approval_email(data["email"], data.get("full_name"))
            email_sent = delivery.sent
            if not delivery.sent:
                logger.warning(f"Approval email for application {approved.id} not sent: {delivery.error}")

        return NeighborReviewResult(application=to_read(approved), email_sent=email_sent)

    def reject(self, admin, application_id: str, reason: Optional[str] = None) -> NeighborReviewResult:
        record = self._pending(admin, application_id)

        rejected = self.store.transition(
            record,
            ApprovalStatus.rejected,
            {
                "reviewed_by": admin.id,
                "reviewed_at": stamp(),
                NEIGHBOR_APPLICATIONS.reason_column: reason,
            },
        )
        if rejected is None:
            raise ConflictError("Application is already being reviewed")

        logger.info(f"Neighbor application {rejected.id} rejected by {admin.id}")
        return NeighborReviewResult(application=to_read(rejected))

    def _pending(self, admin, application_id: str) -> PendingApprovalRecord:
        _require_admin(admin)
        record = self.store.fetch_by_id(application_id)
        if record is None:
            raise NotFoundError("Application not found")
        if record.status != ApprovalStatus.pending:
            raise ConflictError(f"Application is already {record.status}")
        return record


def _require_admin(user):
    if user.role != UserRole.admin.value:
        raise PreconditionError("Only admins can review neighbor applications")
