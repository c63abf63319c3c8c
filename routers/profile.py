# routers/profile.py

from fastapi import APIRouter, Depends

from core.audit import with_audit
from core.auth_context import AuthContext, AuthContextResolver, get_auth_resolver
from core.errors import NotFound, Unauthorized
from core.logging_config import logger
from dependencies.auth import get_auth_context
from models.user import PrimaryNeighborhoodUpdate, ProfileUpdate

router = APIRouter(
    tags=["Profile"],
)


# ============================================================
# Edit the effective user's profile
# ============================================================
@router.patch("/profile")
def update_profile(
    payload: ProfileUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    resolver: AuthContextResolver = Depends(get_auth_resolver),
):
    """
    While impersonating, this edits the subject's profile and stamps the
    staff actor on the row.
    """
    changes = payload.model_dump(exclude_unset=True)
    store = resolver.store_for(ctx)

    if not changes:
        user = store.get_user(ctx.effective_user_id)
        if user is None:
            raise NotFound("User not found", user_id=ctx.effective_user_id)
        return {"success": True, "user": user.model_dump(mode="json")}

    user = store.update_user(ctx.effective_user_id, with_audit(changes, ctx))

    if ctx.is_impersonating:
        logger.info(
            f"Staff {ctx.staff_user_id} updated profile of {ctx.effective_user_id} "
            f"(fields={sorted(changes)})"
        )

    return {"success": True, "user": user.model_dump(mode="json")}


# ============================================================
# Switch the neighborhood the app opens into
# ============================================================
@router.patch("/users/me/primary-neighborhood")
def switch_neighborhood(
    payload: PrimaryNeighborhoodUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    resolver: AuthContextResolver = Depends(get_auth_resolver),
):
    store = resolver.store_for(ctx)
    access = resolver.neighborhood_access(ctx, neighborhood_id=payload.neighborhood_id, store=store)

    if not access.is_active_member:
        raise Unauthorized("You must be an active member of this neighborhood")

    user = store.update_user(
        ctx.effective_user_id,
        with_audit({"primary_neighborhood_id": access.neighborhood.id}, ctx),
    )
    return {"success": True, "user": user.model_dump(mode="json")}
