# routers/posts.py

from fastapi import APIRouter, Depends

from core.audit import with_audit
from core.auth_context import AuthContext, AuthContextResolver, get_auth_resolver
from core.logging_config import logger
from dependencies.auth import get_auth_context
from models.post import PostCreate, PostRead

router = APIRouter(
    tags=["Posts"],
)


# -----------------------------------------------------
# POST /neighborhoods/{id}/posts
# Author is always the effective user; the staff actor is stamped
# when the post is written during impersonation
# -----------------------------------------------------
@router.post("/neighborhoods/{neighborhood_id}/posts", response_model=PostRead)
def create_post(
    neighborhood_id: str,
    payload: PostCreate,
    ctx: AuthContext = Depends(get_auth_context),
    resolver: AuthContextResolver = Depends(get_auth_resolver),
):
    store = resolver.store_for(ctx)
    access = resolver.neighborhood_access(
        ctx, neighborhood_id=neighborhood_id, require_membership=True, store=store
    )

    data = payload.model_dump(mode="json", exclude_none=True)
    data["neighborhood_id"] = access.neighborhood.id
    data["author_id"] = ctx.effective_user_id

    row = store.insert_post(with_audit(data, ctx))
    logger.info(
        f"Post {row.get('id')} created in neighborhood {access.neighborhood.id} "
        f"by {ctx.effective_user_id}"
        + (f" (staff {ctx.staff_user_id})" if ctx.is_impersonating else "")
    )
    return PostRead(**row)
