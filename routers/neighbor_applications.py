# routers/neighbor_applications.py

from fastapi import APIRouter, Depends

from dependencies.auth import CurrentUser, requires_role
from dependencies.db import get_db
from models.neighbor_application import (
    NeighborApplicationRead,
    NeighborRejectRequest,
    NeighborReviewResult,
)
from services.neighbor_applications import NeighborApplicationReview


router = APIRouter(tags=["Neighbor Applications"])


@router.get("/neighbor-applications", response_model=list[NeighborApplicationRead], summary="Applications awaiting review")
def pending_applications(
    current_user: CurrentUser = Depends(requires_role(["admin"])),
    client=Depends(get_db),
):
    return NeighborApplicationReview(client).pending(current_user)


@router.post("/neighbor-applications/{application_id}/approve", response_model=NeighborReviewResult, summary="Approve an application")
def approve_application(
    application_id: str,
    current_user: CurrentUser = Depends(requires_role(["admin"])),
    client=Depends(get_db),
):
    return NeighborApplicationReview(client).approve(current_user, application_id)


@router.post("/neighbor-applications/{application_id}/reject", response_model=NeighborReviewResult, summary="Reject an application")
def reject_application(
    application_id: str,
    payload: NeighborRejectRequest,
    current_user: CurrentUser = Depends(requires_role(["admin"])),
    client=Depends(get_db),
):
    return NeighborApplicationReview(client).reject(current_user, application_id, payload.reason)
