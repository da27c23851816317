from fastapi import HTTPException

from core.supabase_client import get_supabase_client


def get_db():
    """
    Service-role Supabase client for a request.
    Tests replace it through app.dependency_overrides.
    """
    client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")
    return client
