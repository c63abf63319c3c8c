# routers/health.py

from fastapi import APIRouter

from core.config import settings
from core.supabase_client import ping_supabase
from core.roles import staff_allow_list

router = APIRouter(
    prefix="/health",
    tags=["Health"],
)


# -----------------------------------------------------
# GET /health/db
# Supabase connectivity for the tables the access core reads
# No auth required
# -----------------------------------------------------
@router.get("/db", summary="Supabase / DB health check")
def health_db():
    status = ping_supabase()
    return {
        "service": "Supabase",
        "status": status.get("status", "unknown"),
        "details": status,
    }


# -----------------------------------------------------
# GET /health/app
# -----------------------------------------------------
@router.get("/app", summary="App health check")
def health_app():
    """
    Lightweight check for uptime monitors. Reports whether impersonation and
    the staff allow-list are configured, never their values.
    """
    return {
        "service": settings.PROJECT_NAME,
        "status": "ok",
        "impersonation_configured": bool(settings.IMPERSONATION_SECRET),
        "staff_admins_configured": len(staff_allow_list) > 0,
    }
