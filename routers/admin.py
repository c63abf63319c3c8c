# routers/admin.py

from fastapi import APIRouter, Depends

from core.auth_context import AuthContext
from core.membership_lifecycle import MembershipLifecycle
from dependencies.auth import get_auth_context, get_current_principal, get_lifecycle
from models.membership import AddMemberRequest, CreateNeighborhoodRequest
from models.user import Principal


router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
)


# -----------------------------------------------------
# Add a user to a neighborhood (active immediately)
# Staff admins acting as themselves only
# -----------------------------------------------------
@router.post("/users/{user_id}/memberships", summary="Add user to neighborhood")
def add_user_to_neighborhood(
    user_id: str,
    payload: AddMemberRequest,
    ctx: AuthContext = Depends(get_auth_context),
    lifecycle: MembershipLifecycle = Depends(get_lifecycle),
):
    membership = lifecycle.add_member(user_id, payload.neighborhood_id, ctx)
    return {"success": True, "membership": membership.model_dump(mode="json")}


# -----------------------------------------------------
# Force-remove a membership (soft delete)
# -----------------------------------------------------
@router.delete("/users/{user_id}/memberships/{membership_id}", summary="Remove user from neighborhood")
def remove_user_from_neighborhood(
    user_id: str,
    membership_id: str,
    ctx: AuthContext = Depends(get_auth_context),
    lifecycle: MembershipLifecycle = Depends(get_lifecycle),
):
    lifecycle.remove_member(user_id, membership_id, ctx)
    return {"success": True}


# -----------------------------------------------------
# Create a neighborhood (no members yet)
# -----------------------------------------------------
@router.post("/neighborhoods", summary="Create neighborhood")
def create_neighborhood(
    payload: CreateNeighborhoodRequest,
    principal: Principal = Depends(get_current_principal),
    ctx: AuthContext = Depends(get_auth_context),
    lifecycle: MembershipLifecycle = Depends(get_lifecycle),
):
    neighborhood = lifecycle.create_neighborhood(payload, ctx, principal)
    return {"success": True, "neighborhood": neighborhood.model_dump(mode="json")}
