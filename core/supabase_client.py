# core/supabase_client.py

from typing import Optional

from supabase import create_client, Client
from core.config import settings
from core.logging_config import logger
from models.enums import DataAccessMode


# ============================================================
# Elevated client (SERVICE ROLE, bypasses row-level security)
# ============================================================

def get_supabase_client() -> Optional[Client]:
    """
    Creates a Supabase client using the SERVICE ROLE KEY.
    Only handed to staff contexts, and used internally for
    impersonation target lookups.
    """
    try:
        supabase_url = settings.SUPABASE_URL
        supabase_key = settings.SUPABASE_SERVICE_ROLE_KEY  # MUST be service-role

        if not supabase_url or not supabase_key:
            logger.error("Missing Supabase credentials")
            logger.error(f"   URL: {supabase_url}")
            logger.error(f"   SERVICE ROLE KEY: {'SET' if supabase_key else 'MISSING'}")
            return None

        return create_client(supabase_url, supabase_key)

    except Exception as e:
        logger.error(f"Supabase Init Error: {e}", exc_info=True)
        return None


# ============================================================
# Restricted client (ANON key + principal JWT, RLS applies)
# ============================================================

def get_user_client(access_token: str) -> Optional[Client]:
    """
    Creates a Supabase client that queries *as* the given principal,
    so every read and write is governed by row-level security.
    """
    try:
        supabase_url = settings.SUPABASE_URL
        anon_key = settings.SUPABASE_ANON_KEY

        if not supabase_url or not anon_key:
            logger.error("Missing Supabase anon credentials")
            return None

        client = create_client(supabase_url, anon_key)
        client.postgrest.auth(access_token)
        return client

    except Exception as e:
        logger.error(f"Supabase Init Error: {e}", exc_info=True)
        return None


# ============================================================
# Capability selector
# ============================================================

def get_data_client(ctx) -> Optional[Client]:
    """
    Pick the data-access capability for a resolved AuthContext.
    Elevated access is only ever returned for staff contexts.
    """
    if ctx.data_access == DataAccessMode.elevated and ctx.is_staff_admin:
        return get_supabase_client()
    return get_user_client(ctx.access_token or "")


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

        tables = ["users", "neighborhoods", "memberships"]
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
