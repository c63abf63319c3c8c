# routers/auth.py

from typing import Optional
from fastapi import APIRouter, Depends

from core.auth_context import AuthContext
from core.roles import is_staff_admin
from dependencies.auth import get_auth_context, get_optional_principal
from models.user import Principal

router = APIRouter(
    prefix="/auth",
    tags=["Auth"],
)


# -----------------------------------------------------
# GET /auth/staff-status
# Used by the frontend to decide whether to show staff navigation
# -----------------------------------------------------
@router.get("/staff-status", summary="Is the caller a staff admin?")
def staff_status(principal: Optional[Principal] = Depends(get_optional_principal)):
    if principal is None:
        return {"is_staff_admin": False}
    return {"is_staff_admin": is_staff_admin(principal.email)}


# -----------------------------------------------------
# GET /auth/context
# -----------------------------------------------------
@router.get("/context", summary="Resolved effective identity for this request")
def auth_context(ctx: AuthContext = Depends(get_auth_context)):
    return ctx.model_dump(mode="json")
