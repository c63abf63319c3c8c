# routers/impersonation.py

from fastapi import APIRouter, Depends, Request, Response

from core.impersonation import (
    ImpersonationManager,
    clear_impersonation_cookie,
    get_impersonation_manager,
    set_impersonation_cookie,
)
from core.errors import Unauthorized
from dependencies.auth import get_current_principal
from models.impersonation import (
    ImpersonationContext,
    ImpersonationResponse,
    StartImpersonationRequest,
)
from models.user import Principal

router = APIRouter(
    prefix="/impersonation",
    tags=["Staff Impersonation"],
)


# ============================================================
# Current impersonation state (staff only)
# ============================================================
@router.get("", response_model=ImpersonationContext)
def get_impersonation(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    manager: ImpersonationManager = Depends(get_impersonation_manager),
):
    context = manager.get_impersonation_context(request, principal)
    if context is None:
        raise Unauthorized("Only staff admins can view impersonation state")
    return context


# ============================================================
# Start impersonating a user
# ============================================================
@router.post("/start", response_model=ImpersonationResponse)
def start_impersonation(
    request: Request,
    payload: StartImpersonationRequest,
    response: Response,
    principal: Principal = Depends(get_current_principal),
    manager: ImpersonationManager = Depends(get_impersonation_manager),
):
    """
    Staff admins only. Replaces any session the caller already had, and
    hands back where the frontend should navigate (the subject's view).
    """
    start = manager.start_impersonation(
        principal, payload.target_user_id, payload.redirect_to, request
    )
    set_impersonation_cookie(response, start, manager.config)
    return ImpersonationResponse(success=True, redirect_to=start.redirect_to)


# ============================================================
# Stop impersonating, back to the staff panel
# ============================================================
@router.post("/end", response_model=ImpersonationResponse)
def end_impersonation(
    request: Request,
    response: Response,
    principal: Principal = Depends(get_current_principal),
    manager: ImpersonationManager = Depends(get_impersonation_manager),
):
    redirect_to = manager.end_impersonation(request, principal)
    clear_impersonation_cookie(response, manager.config)
    return ImpersonationResponse(success=True, redirect_to=redirect_to)
