# core/supabase_helpers.py

from typing import Optional

from core.utils import sanitize
from core.errors import supabase_error
from core.supabase_client import get_supabase_client


# =================================================================
#  SAFE SELECT / INSERT / UPDATE / DELETE
# =================================================================
# Every helper takes an optional `client` so services can run against
# an injected client (tests pass an in-memory fake). Without one the
# service-role client is used.
#
# These helpers must NOT be used for auth.users; see the auth admin
# helpers further down.
# =================================================================

def _client(client):
    return client if client is not None else get_supabase_client()


def safe_select(table: str, filters: dict = None, *, single=False, order_by: str = None, client=None):
    """
    Safe table SELECT.
    With single=True returns the first matching row or None.
    """
    client = _client(client)

    try:
        query = client.table(table).select("*")
        if filters:
            for key, val in filters.items():
                query = query.eq(key, val)
        if order_by:
            query = query.order(order_by, desc=True)
        if single:
            query = query.limit(1)

        result = query.execute()
        rows = result.data or []
        if single:
            return rows[0] if rows else None
        return rows

    except Exception as e:
        supabase_error(e, f"Failed to fetch from {table}")


def safe_insert(table: str, data: dict, *, client=None):
    """Safe INSERT, returns the inserted row."""
    client = _client(client)
    cleaned = sanitize(data)

    try:
        result = (
            client.table(table)
            .insert(cleaned, returning="representation")
            .execute()
        )
        return result.data[0] if result.data else None

    except Exception as e:
        supabase_error(e, f"Failed to insert into {table}")


def safe_upsert(table: str, data: dict, on_conflict: str, *, client=None):
    """Safe UPSERT keyed on a unique column, returns the stored row."""
    client = _client(client)
    cleaned = sanitize(data)

    try:
        result = (
            client.table(table)
            .upsert(cleaned, on_conflict=on_conflict)
            .execute()
        )
        return result.data[0] if result.data else None

    except Exception as e:
        supabase_error(e, f"Failed to upsert into {table}")


def safe_update(table: str, filters: dict, data: dict, *, client=None):
    """Safe UPDATE, returns the first updated row (or None)."""
    client = _client(client)
    cleaned = sanitize(data)

    try:
        query = client.table(table).update(
            cleaned, returning="representation"
        )
        for key, val in filters.items():
            query = query.eq(key, val)

        result = query.execute()
        return result.data[0] if result.data else None

    except Exception as e:
        supabase_error(e, f"Failed to update {table}")


def safe_delete(table: str, filters: dict, *, client=None):
    """Safe DELETE, returns the deleted rows."""
    client = _client(client)

    try:
        query = client.table(table).delete()
        for key, val in filters.items():
            query = query.eq(key, val)
        return query.execute().data or []

    except Exception as e:
        supabase_error(e, f"Failed to delete from {table}")


def compare_and_set(table: str, filters: dict, expected: dict, data: dict, *, client=None) -> Optional[dict]:
    """
    Conditional UPDATE: `UPDATE table SET data WHERE filters AND expected`.

    Returns the updated row, or None when no row still matched `expected`
    (another writer got there first).

    Example:
        compare_and_set("pending_teen_signups", {"id": sid},
                        {"status": "pending"}, {"status": "approved"})
    """
    return safe_update(table, {**filters, **expected}, data, client=client)


# =================================================================
#  SUPABASE AUTH ADMIN HELPERS
# =================================================================

def create_supabase_user(email: str, password: str = None, metadata: dict = None, *, email_confirm: bool = False, client=None):
    """
    Create a user via Supabase Auth Admin API.
    Password may be omitted (provisional accounts set it later).
    """
    client = _client(client)

    payload = {
        "email": email,
        "email_confirm": email_confirm,
        "user_metadata": metadata or {},
    }
    if password:
        payload["password"] = password

    try:
        result = client.auth.admin.create_user(payload)
        return result.user

    except Exception as e:
        supabase_error(e, "Failed to create Supabase Auth user")


def update_user_metadata(user_id: str, metadata: dict, *, client=None):
    """
    Merge metadata into existing user_metadata.
    Example:
        update_user_metadata(user_id, {"phone": "+15551234567"})
    """
    client = _client(client)

    try:
        current = client.auth.admin.get_user_by_id(user_id)
        existing = (current.user.user_metadata or {}) if current and current.user else {}
        result = client.auth.admin.update_user_by_id(
            user_id,
            {
                "user_metadata": {**existing, **metadata}
            }
        )
        return result.user

    except Exception as e:
        supabase_error(e, "Failed to update Supabase user metadata")
