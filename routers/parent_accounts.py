# routers/parent_accounts.py

from fastapi import APIRouter, Depends

from core.logging_config import logger
from dependencies.auth import CurrentUser, get_current_user
from dependencies.db import get_db
from models.enums import UserRole
from models.parent_account import ParentAccountCreate, ParentAccountRead
from services.parent_accounts import find_or_create_parent, link_teen_to_parent


router = APIRouter(tags=["Parent Accounts"])


# -----------------------------------------------------
# POST /create-parent-account
# Called while a teen completes their account
# -----------------------------------------------------
@router.post("/create-parent-account", response_model=ParentAccountRead, summary="Find or create the parent account")
def create_parent_account(
    payload: ParentAccountCreate,
    current_user: CurrentUser = Depends(get_current_user),
    client=Depends(get_db),
):
    parent_id, created = find_or_create_parent(
        client,
        payload.parent_email,
        payload.parent_phone,
        payload.teen_name,
    )

    if current_user.role == UserRole.teen.value and current_user.parent_id != parent_id:
        link_teen_to_parent(client, current_user.id, parent_id, payload.parent_email)
        logger.info(f"Linked teen {current_user.id} to parent {parent_id}")

    return ParentAccountRead(parent_id=parent_id, created=created)
