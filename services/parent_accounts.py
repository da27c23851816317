# services/parent_accounts.py

from typing import Optional, Tuple

from fastapi import HTTPException

from core.errors import extract_supabase_error, handle_supabase_error, ProviderError, ValidationError
from core.logging_config import logger, mask_phone
from core.supabase_helpers import safe_select, safe_insert, safe_update, update_user_metadata
from core.utils import normalize_email, normalize_phone
from models.enums import UserRole


USER_EXISTS_MARKERS = (
    "already registered",
    "already exists",
    "user already",
    "email address is already",
)


def _is_user_exists_error(error: Exception) -> bool:
    message = extract_supabase_error(error).lower()
    code = str(getattr(error, "code", "") or "")
    status = getattr(error, "status", None)
    return (
        any(marker in message for marker in USER_EXISTS_MARKERS)
        or code == "user_already_registered"
        or status == 422
    )


def _find_auth_user_id(client, email: str) -> Optional[str]:
    """Look the user up in auth.users (slow path, only after a create conflict)."""
    users = client.auth.admin.list_users()
    for user in users or []:
        if (getattr(user, "email", "") or "").lower() == email:
            return user.id
    return None


def find_or_create_parent(
    client,
    parent_email: str,
    parent_phone: Optional[str] = None,
    teen_name: Optional[str] = None,
) -> Tuple[str, bool]:
    """
    Find the parent account for `parent_email`, creating a provisional one
    if none exists. Returns (parent_id, created).

    Email is matched case-insensitively. The phone is written to BOTH the
    users row and the auth user metadata every time, so a parent who
    changed numbers gets the new one everywhere.
    """
    email = normalize_email(parent_email)
    if not email:
        raise ValidationError("Parent email is required")
    phone = normalize_phone(parent_phone)

    profile_fields = {"role": UserRole.parent.value, "email": email, "phone": phone}

    # -------------------------------------------------
    # 1) Existing parent profile
    # -------------------------------------------------
    existing = safe_select("users", {"email": email, "role": UserRole.parent.value}, single=True, client=client)
    if existing:
        parent_id = existing["id"]
        safe_update("users", {"id": parent_id}, profile_fields, client=client)
        _sync_auth_phone(client, parent_id, phone)
        logger.info(f"Parent {parent_id} already exists, phone synced ({mask_phone(phone)})")
        return parent_id, False

    # -------------------------------------------------
    # 2) Create (or locate) the auth user
    # -------------------------------------------------
    created = False
    try:
        result = client.auth.admin.create_user({
            "email": email,
            "email_confirm": True,
            "user_metadata": {"role": UserRole.parent.value, "is_provisional": True, "phone": phone},
        })
        if not result or not result.user:
            raise ProviderError("Failed to create parent account")
        parent_id = result.user.id
        created = True
        logger.info(f"Created provisional parent auth user {parent_id}")

    except ProviderError:
        raise
    except Exception as e:
        if not _is_user_exists_error(e):
            logger.error(f"Error creating parent auth user: {extract_supabase_error(e)}")
            raise handle_supabase_error(e, "Failed to create parent account")

        any_profile = safe_select("users", {"email": email}, single=True, client=client)
        parent_id = any_profile["id"] if any_profile else _find_auth_user_id(client, email)
        if not parent_id:
            raise ProviderError("Parent account exists but could not be located")
        logger.info(f"Auth user for parent already existed: {parent_id}")

    # -------------------------------------------------
    # 3) Profile row
    # -------------------------------------------------
    profile = safe_select("users", {"id": parent_id}, single=True, client=client)
    if profile:
        safe_update("users", {"id": parent_id}, profile_fields, client=client)
    else:
        try:
            safe_insert("users", {
                "id": parent_id,
                "full_name": f"Parent of {teen_name}" if teen_name else "Parent",
                **profile_fields,
            }, client=client)
        except HTTPException:
            if created:
                try:
                    client.auth.admin.delete_user(parent_id)
                    logger.info(f"Removed auth user {parent_id} after profile insert failed")
                except Exception as cleanup_error:
                    logger.error(f"Could not remove auth user {parent_id}: {cleanup_error}")
            raise

    if not created:
        _sync_auth_phone(client, parent_id, phone)

    return parent_id, created


def _sync_auth_phone(client, user_id: str, phone: Optional[str]):
    update_user_metadata(user_id, {"phone": phone, "role": UserRole.parent.value}, client=client)


def link_teen_to_parent(client, teen_id: str, parent_id: str, parent_email: str):
    """Point an existing teen profile at its approving parent."""
    return safe_update(
        "users",
        {"id": teen_id},
        {"parent_id": parent_id, "parent_email": normalize_email(parent_email)},
        client=client,
    )
