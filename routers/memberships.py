# routers/memberships.py

from fastapi import APIRouter, Depends

from core.auth_context import AuthContext
from core.membership_lifecycle import MembershipLifecycle
from dependencies.auth import get_auth_context, get_current_principal, get_lifecycle
from models.enums import MembershipAction
from models.membership import RoleChange
from models.user import Principal

router = APIRouter(
    tags=["Memberships"],
)


# ============================================================
# Join / rejoin a neighborhood
# ============================================================
@router.post("/neighborhoods/{neighborhood_id}/join")
def join_neighborhood(
    neighborhood_id: str,
    principal: Principal = Depends(get_current_principal),
    ctx: AuthContext = Depends(get_auth_context),
    lifecycle: MembershipLifecycle = Depends(get_lifecycle),
):
    """
    New members start pending when the neighborhood requires approval,
    except its very first member. A member who moved out rejoins the same row.
    """
    result = lifecycle.request_join(neighborhood_id, ctx, principal)
    return {
        "success": True,
        "rejoined": result.rejoined,
        "membership": result.membership.model_dump(mode="json"),
    }


# ============================================================
# Review pending requests
# ============================================================
@router.post("/memberships/{membership_id}/approve")
def approve_membership(
    membership_id: str,
    ctx: AuthContext = Depends(get_auth_context),
    lifecycle: MembershipLifecycle = Depends(get_lifecycle),
):
    membership = lifecycle.transition(membership_id, MembershipAction.approve, ctx)
    return {"success": True, "membership": membership.model_dump(mode="json")}


@router.post("/memberships/{membership_id}/decline")
def decline_membership(
    membership_id: str,
    ctx: AuthContext = Depends(get_auth_context),
    lifecycle: MembershipLifecycle = Depends(get_lifecycle),
):
    membership = lifecycle.transition(membership_id, MembershipAction.decline, ctx)
    return {"success": True, "membership": membership.model_dump(mode="json")}


# ============================================================
# Promote / demote
# ============================================================
@router.patch("/memberships/{membership_id}/role")
def change_role(
    membership_id: str,
    payload: RoleChange,
    ctx: AuthContext = Depends(get_auth_context),
    lifecycle: MembershipLifecycle = Depends(get_lifecycle),
):
    membership = lifecycle.change_role(membership_id, payload.role, ctx)
    return {"success": True, "membership": membership.model_dump(mode="json")}


# ============================================================
# Move out (self-leave or removal by an admin)
# ============================================================
@router.post("/memberships/{membership_id}/move-out")
def move_out(
    membership_id: str,
    ctx: AuthContext = Depends(get_auth_context),
    lifecycle: MembershipLifecycle = Depends(get_lifecycle),
):
    membership = lifecycle.transition(membership_id, MembershipAction.mark_moved_out, ctx)
    is_own = membership.user_id == ctx.effective_user_id
    return {
        "success": True,
        "message": "You have been marked as moved out" if is_own else "Member has been marked as moved out",
        "membership": membership.model_dump(mode="json"),
    }
