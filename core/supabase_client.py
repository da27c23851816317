# core/supabase_client.py

from typing import Optional

from supabase import create_client, acreate_client, Client, AsyncClient
from core.config import settings
from core.logging_config import logger


# ============================================================
# Supabase Client Factory (ALWAYS service role)
# ============================================================

def get_supabase_client() -> Client:
    """
    Creates a Supabase client using the SERVICE ROLE KEY.
    REQUIRED for:
        - auth.admin.create_user (parent provisioning)
        - auth.admin.update_user_by_id (phone re-sync)
        - approval tables, which are not writable through RLS
    """
    try:
        supabase_url = settings.SUPABASE_URL
        supabase_key = settings.SUPABASE_SERVICE_ROLE_KEY  # MUST be service-role

        if not supabase_url or not supabase_key:
            logger.error("Missing Supabase credentials")
            logger.error(f"   URL: {supabase_url}")
            logger.error(f"   SERVICE ROLE KEY: {'SET' if supabase_key else 'MISSING'}")
            return None

        client = create_client(supabase_url, supabase_key)
        return client

    except Exception as e:
        logger.error(f"Supabase Init Error: {e}", exc_info=True)
        return None


# ============================================================
# Realtime Client (async; postgres_changes needs a websocket)
# ============================================================

async def get_realtime_client(key: Optional[str] = None) -> Optional[AsyncClient]:
    """
    Async Supabase client for realtime subscriptions.

    The requester side normally connects with the anon key (or the
    caller's session); the service role key is used when none is given.
    """
    supabase_url = settings.SUPABASE_URL
    supabase_key = key or settings.SUPABASE_ANON_KEY or settings.SUPABASE_SERVICE_ROLE_KEY

    if not supabase_url or not supabase_key:
        logger.warning("Realtime not configured — status updates will rely on polling")
        return None

    try:
        return await acreate_client(supabase_url, supabase_key)
    except Exception as e:
        logger.error(f"Supabase Realtime Init Error: {e}", exc_info=True)
        return None


# ============================================================
# Ping Supabase for health checks
# ============================================================

def ping_supabase() -> dict:
    """
    Simple connectivity check.
    Does NOT query auth tables.
    """
    try:
        client = get_supabase_client()
        if client is None:
            return {"service": "Supabase", "status": "not_configured"}

        tables = ["pending_teen_signups", "bank_account_approvals", "bank_accounts", "users"]
        results = {}

        for t in tables:
            try:
                res = client.table(t).select("id").limit(1).execute()
                results[t] = {
                    "status": "ok",
                    "rows_found": len(res.data or [])
                }
            except Exception as err:
                results[t] = {"status": "error", "detail": str(err)}

        return {
            "service": "Supabase",
            "status": "ok",
            "tables": results,
        }

    except Exception as e:
        logger.error(f"Supabase Ping Error: {e}", exc_info=True)
        return {"service": "Supabase", "status": "error", "detail": str(e)}
