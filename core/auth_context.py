# core/auth_context.py

"""
Auth context resolution.

Consolidates the pattern every protected request needs:
  1. Is the principal a staff admin?
  2. If so, are they impersonating someone?
  3. Whose permissions apply (the effective user)?
  4. Which data-access capability runs the queries?

Staff admins always get the elevated (RLS-bypassing) capability because they
hold no memberships the restricted path could authorize. Everyone else gets
the restricted capability. An impersonating staff admin's neighborhood
authority comes only from the subject's own membership row.
"""

from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.errors import NotFound, StoreFailure, Unauthenticated, Unauthorized
from core.impersonation import ImpersonationManager, get_impersonation_manager
from core.logging_config import logger
from core.membership_store import MembershipStore
from core.roles import is_staff_admin
from core.supabase_client import get_data_client, get_supabase_client
from models.enums import DataAccessMode
from models.membership import Membership, Neighborhood
from models.user import Principal


class AuthContext(BaseModel):
    """Effective identity for one request. Never cached across requests."""

    model_config = ConfigDict(frozen=True)

    principal_id: str
    principal_email: Optional[str] = None
    effective_user_id: str
    is_staff_admin: bool = False
    is_impersonating: bool = False
    staff_user_id: Optional[str] = None
    data_access: DataAccessMode = DataAccessMode.restricted

    access_token: Optional[str] = Field(None, repr=False, exclude=True)

    @model_validator(mode="after")
    def _check_capability(self):
        if self.data_access == DataAccessMode.elevated and not self.is_staff_admin:
            raise ValueError("elevated data access requires a staff admin principal")
        if self.is_impersonating and not (self.is_staff_admin and self.staff_user_id):
            raise ValueError("only staff admins can impersonate")
        if not self.is_impersonating and self.effective_user_id != self.principal_id:
            raise ValueError("effective user differs from principal without impersonation")
        return self

    @property
    def is_staff_acting_as_self(self) -> bool:
        return self.is_staff_admin and not self.is_impersonating


class NeighborhoodAccess(BaseModel):
    """AuthContext narrowed to one neighborhood."""

    context: AuthContext
    neighborhood: Neighborhood
    membership: Optional[Membership] = None
    is_neighborhood_admin: bool = False

    @property
    def effective_user_id(self) -> str:
        return self.context.effective_user_id

    @property
    def is_staff_admin(self) -> bool:
        return self.context.is_staff_admin

    @property
    def is_active_member(self) -> bool:
        return self.membership is not None and self.membership.is_active


def _default_store_factory(ctx: AuthContext) -> MembershipStore:
    return MembershipStore(get_data_client(ctx))


def _default_elevated_store() -> MembershipStore:
    return MembershipStore(get_supabase_client())


class AuthContextResolver:

    def __init__(
        self,
        impersonation: Optional[ImpersonationManager] = None,
        store_factory: Callable[[AuthContext], MembershipStore] = _default_store_factory,
        elevated_store_factory: Callable[[], MembershipStore] = _default_elevated_store,
    ):
        self.impersonation = impersonation or get_impersonation_manager()
        self._store_factory = store_factory
        self._elevated_store_factory = elevated_store_factory

    def store_for(self, ctx: AuthContext) -> MembershipStore:
        """Membership store bound to the capability the context allows."""
        return self._store_factory(ctx)

    def elevated_store(self) -> MembershipStore:
        """
        Store that bypasses row-level security regardless of the caller.
        Only for decisions that must see rows the caller cannot, such as
        the first-member election.
        """
        return self._elevated_store_factory()

    # ============================================================
    # Effective identity
    # ============================================================
    def resolve(self, principal: Optional[Principal], request) -> AuthContext:
        if principal is None:
            raise Unauthenticated()

        cached = getattr(request.state, "auth_context", None)
        if cached is not None and cached.principal_id == principal.id:
            return cached

        user_is_staff = is_staff_admin(principal.email)

        if user_is_staff:
            impersonation = self.impersonation.get_impersonation_context(request, principal)
            impersonating = bool(
                impersonation
                and impersonation.is_impersonating
                and impersonation.impersonated_user_id
            )
            ctx = AuthContext(
                principal_id=principal.id,
                principal_email=principal.email,
                effective_user_id=impersonation.impersonated_user_id if impersonating else principal.id,
                is_staff_admin=True,
                is_impersonating=impersonating,
                staff_user_id=principal.id if impersonating else None,
                data_access=DataAccessMode.elevated,
                access_token=principal.access_token,
            )
        else:
            ctx = AuthContext(
                principal_id=principal.id,
                principal_email=principal.email,
                effective_user_id=principal.id,
                data_access=DataAccessMode.restricted,
                access_token=principal.access_token,
            )

        request.state.auth_context = ctx
        return ctx

    # ============================================================
    # Neighborhood scope
    # ============================================================
    def neighborhood_access(
        self,
        ctx: AuthContext,
        neighborhood_id: Optional[str] = None,
        slug: Optional[str] = None,
        require_membership: bool = False,
        store: Optional[MembershipStore] = None,
    ) -> NeighborhoodAccess:
        store = store or self.store_for(ctx)

        if neighborhood_id:
            neighborhood = store.get_neighborhood(neighborhood_id)
        elif slug:
            neighborhood = store.get_neighborhood_by_slug(slug)
        else:
            raise NotFound("Neighborhood not found")

        if neighborhood is None:
            raise NotFound("Neighborhood not found", neighborhood_id=neighborhood_id, slug=slug)

        try:
            membership = store.find_membership(ctx.effective_user_id, neighborhood.id)
        except StoreFailure as e:
            # Fail closed: an unreadable membership grants nothing
            logger.warning(
                f"Membership lookup failed for user {ctx.effective_user_id} "
                f"in neighborhood {neighborhood.id}; treating as no membership: {e.message}"
            )
            membership = None

        access = NeighborhoodAccess(
            context=ctx,
            neighborhood=neighborhood,
            membership=membership,
            is_neighborhood_admin=bool(membership and membership.is_admin) or ctx.is_staff_acting_as_self,
        )

        if require_membership and not (access.is_active_member or ctx.is_staff_acting_as_self):
            raise Unauthorized("You must be an active member of this neighborhood")

        return access


_resolver = AuthContextResolver()


def get_auth_resolver() -> AuthContextResolver:
    """FastAPI dependency; tests override it."""
    return _resolver
