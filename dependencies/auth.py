from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from core.logging_config import logger
from core.supabase_helpers import safe_select
from dependencies.db import get_db


bearer_scheme = HTTPBearer(auto_error=False)


# ============================================================
# Current User Model (auth identity + users row)
# ============================================================
class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None
    role: str

    full_name: Optional[str] = None
    phone: Optional[str] = None
    parent_id: Optional[str] = None       # teens only
    parent_email: Optional[str] = None


# ============================================================
# AUTH DECODING (Supabase: validates JWT + loads the profile)
# ============================================================
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    client=Depends(get_db),
) -> CurrentUser:

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired authentication token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    # ---------------------------------------------------------
    # Validate JWT via Supabase GoTrue
    # ---------------------------------------------------------
    try:
        auth_resp = client.auth.get_user(credentials.credentials)
        if not auth_resp or not auth_resp.user:
            raise unauthorized
        auth_user = auth_resp.user
    except HTTPException:
        raise
    except Exception as e:
        logger.warning(f"Token validation failed: {e}")
        raise unauthorized

    # ---------------------------------------------------------
    # Role and parent link come from the users table,
    # not from editable auth metadata
    # ---------------------------------------------------------
    profile = safe_select("users", {"id": auth_user.id}, single=True, client=client)
    if not profile:
        raise HTTPException(404, "User profile not found")

    metadata = auth_user.user_metadata or {}

    return CurrentUser(
        id=auth_user.id,
        email=profile.get("email") or auth_user.email,
        role=profile.get("role") or metadata.get("role") or "teen",
        full_name=profile.get("full_name") or metadata.get("full_name"),
        phone=profile.get("phone") or metadata.get("phone"),
        parent_id=profile.get("parent_id"),
        parent_email=profile.get("parent_email"),
    )


# ============================================================
# ROLE CHECKER (basic role list guard)
# ============================================================
def requires_role(allowed_roles: list[str]):
    def checker(current_user: CurrentUser = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Requires one of: {allowed_roles}",
            )
        return current_user
    return checker
