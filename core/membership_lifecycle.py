# core/membership_lifecycle.py

"""
Membership lifecycle.

    pending   --approve-->        active
    pending   --decline-->        inactive (soft deleted)
    active    --mark_moved_out--> moved_out   (+ best-effort item cleanup)
    moved_out --rejoin-->         pending | active (neighborhood policy)
    active member <--promote / demote--> active admin

Who may trigger each transition:

    approve / decline   neighborhood admin, staff admin
    promote_to_admin    neighborhood admin, staff admin
    demote_to_member    staff admin only
    mark_moved_out      the member themself, neighborhood admin, staff admin
    rejoin              the member themself only

Staff admin here always means a staff admin acting as themselves. While
impersonating, authority comes from the subject's membership alone.
"""

from typing import Optional

from core.audit import with_audit
from core.auth_context import AuthContext, AuthContextResolver, NeighborhoodAccess
from core.errors import (
    InvalidTransition,
    NotFound,
    SelfActionForbidden,
    StoreFailure,
    Unauthorized,
)
from core.logging_config import logger
from core.membership_store import MembershipStore, utcnow
from core.roles import is_staff_admin
from models.enums import MembershipAction, MembershipRole, MembershipStatus
from models.membership import CreateNeighborhoodRequest, JoinResult, Membership, Neighborhood, slugify
from models.user import Principal


# Status a membership must be in for each action
REQUIRED_STATUS = {
    MembershipAction.approve: MembershipStatus.pending,
    MembershipAction.decline: MembershipStatus.pending,
    MembershipAction.promote_to_admin: MembershipStatus.active,
    MembershipAction.demote_to_member: MembershipStatus.active,
    MembershipAction.mark_moved_out: MembershipStatus.active,
    MembershipAction.rejoin: MembershipStatus.moved_out,
}


# ============================================================
# Authorization (pure)
# ============================================================
def authorize_transition(membership: Membership, action: MembershipAction, access: NeighborhoodAccess) -> None:
    """
    Raise unless the actor described by `access` may apply `action` to
    `membership`. Acting on one's own membership is only allowed for
    self-leave and rejoin, even for actors who otherwise have authority.
    """
    ctx = access.context

    if membership.neighborhood_id != access.neighborhood.id:
        raise Unauthorized("Membership does not belong to this neighborhood", membership_id=membership.id)

    is_self = membership.user_id == ctx.effective_user_id

    if action == MembershipAction.rejoin:
        if not is_self:
            raise Unauthorized("Only the member can rejoin a neighborhood", membership_id=membership.id)
        return

    if action == MembershipAction.mark_moved_out:
        if is_self or access.is_neighborhood_admin:
            return
        raise Unauthorized("You don't have permission to perform this action", membership_id=membership.id)

    if is_self:
        raise SelfActionForbidden(membership_id=membership.id)

    if action == MembershipAction.demote_to_member:
        if not ctx.is_staff_acting_as_self:
            raise Unauthorized("Only staff admins can demote admins", membership_id=membership.id)
        return

    if not access.is_neighborhood_admin:
        if action == MembershipAction.promote_to_admin:
            raise Unauthorized("Only admins can promote members", membership_id=membership.id)
        raise Unauthorized("Only admins can review membership requests", membership_id=membership.id)


def check_transition_state(membership: Membership, action: MembershipAction) -> None:
    if membership.is_deleted:
        raise InvalidTransition("Membership has been removed", membership_id=membership.id)

    required = REQUIRED_STATUS[action]
    if membership.status != required:
        raise InvalidTransition(
            f"Cannot {action.value.replace('_', ' ')} a membership that is {membership.status.value}",
            membership_id=membership.id,
        )


def is_noop(membership: Membership, action: MembershipAction) -> bool:
    if action == MembershipAction.promote_to_admin:
        return membership.role == MembershipRole.admin
    if action == MembershipAction.demote_to_member:
        return membership.role == MembershipRole.member
    return False


def transition_changes(action: MembershipAction, access: NeighborhoodAccess) -> dict:
    if action == MembershipAction.approve:
        return {"status": MembershipStatus.active.value}
    if action == MembershipAction.decline:
        # Soft decline; the row stays for history
        return {"status": MembershipStatus.inactive.value, "deleted_at": utcnow().isoformat()}
    if action == MembershipAction.promote_to_admin:
        return {"role": MembershipRole.admin.value}
    if action == MembershipAction.demote_to_member:
        return {"role": MembershipRole.member.value}
    if action == MembershipAction.mark_moved_out:
        return {"status": MembershipStatus.moved_out.value}
    if action == MembershipAction.rejoin:
        # First-member bootstrap deliberately does not apply here
        status = MembershipStatus.pending if access.neighborhood.require_approval else MembershipStatus.active
        return {"status": status.value}
    raise ValueError(f"Unknown membership action: {action}")


# ============================================================
# Lifecycle service
# ============================================================
class MembershipLifecycle:

    def __init__(self, resolver: AuthContextResolver):
        self.resolver = resolver

    def transition(self, membership_id: str, action: MembershipAction, ctx: AuthContext) -> Membership:
        store = self.resolver.store_for(ctx)

        membership = store.get_membership(membership_id)
        if membership is None:
            raise NotFound("Membership not found", membership_id=membership_id)

        access = self.resolver.neighborhood_access(
            ctx, neighborhood_id=membership.neighborhood_id, store=store
        )
        return self._apply(store, membership, action, access)

    def change_role(self, membership_id: str, role: MembershipRole, ctx: AuthContext) -> Membership:
        action = (
            MembershipAction.promote_to_admin
            if role == MembershipRole.admin
            else MembershipAction.demote_to_member
        )
        return self.transition(membership_id, action, ctx)

    def _apply(
        self,
        store: MembershipStore,
        membership: Membership,
        action: MembershipAction,
        access: NeighborhoodAccess,
    ) -> Membership:
        ctx = access.context

        # Authorization completes before anything is written
        authorize_transition(membership, action, access)
        check_transition_state(membership, action)

        if is_noop(membership, action):
            return membership

        changes = with_audit(transition_changes(action, access), ctx)
        updated = store.update_membership(membership.id, changes)

        logger.info(
            f"Membership {membership.id} {action.value} by {ctx.principal_id} "
            f"(effective={ctx.effective_user_id}): "
            f"{membership.status.value}/{membership.role.value} -> "
            f"{updated.status.value}/{updated.role.value}"
        )

        if action == MembershipAction.mark_moved_out:
            self._cleanup_items(store, updated)

        return updated

    def _cleanup_items(self, store: MembershipStore, membership: Membership) -> None:
        """Lending library items go with the member. Failure never undoes the move-out."""
        try:
            store.delete_member_items(membership.user_id, membership.neighborhood_id)
        except StoreFailure as e:
            logger.error(
                f"Error deleting items for moved out member "
                f"(membership_id={membership.id}, user_id={membership.user_id}, "
                f"neighborhood_id={membership.neighborhood_id}): {e.message}"
            )

    # ============================================================
    # Join / rejoin
    # ============================================================
    def request_join(
        self,
        neighborhood_id: str,
        ctx: AuthContext,
        principal: Optional[Principal] = None,
    ) -> JoinResult:
        if ctx.is_staff_acting_as_self:
            raise Unauthorized("Staff admins do not hold memberships; impersonate a user to join")

        store = self.resolver.store_for(ctx)
        access = self.resolver.neighborhood_access(ctx, neighborhood_id=neighborhood_id, store=store)
        existing = access.membership

        if existing is not None:
            if existing.status == MembershipStatus.moved_out:
                return JoinResult(
                    membership=self._apply(store, existing, MembershipAction.rejoin, access),
                    rejoined=True,
                )
            raise InvalidTransition(
                f"You already have a {existing.status.value} membership in this neighborhood",
                membership_id=existing.id,
            )

        if principal is not None and not ctx.is_impersonating:
            store.ensure_user_profile(principal)

        neighborhood = access.neighborhood
        audit = with_audit({}, ctx)

        if not neighborhood.require_approval:
            membership = store.insert_membership(
                ctx.effective_user_id, neighborhood.id,
                MembershipRole.member, MembershipStatus.active, audit,
            )
        else:
            membership = store.insert_membership(
                ctx.effective_user_id, neighborhood.id,
                MembershipRole.member, MembershipStatus.pending, audit,
            )
            # The election has to see every row in the neighborhood, which
            # row-level security hides from a pending joiner
            membership = self.resolver.elevated_store().claim_bootstrap_activation(membership)

        logger.info(
            f"User {ctx.effective_user_id} joined neighborhood {neighborhood.id} "
            f"as {membership.status.value}"
        )
        return JoinResult(membership=membership)

    # ============================================================
    # Staff-only membership management
    # ============================================================
    def _require_staff(self, ctx: AuthContext, action: str, **context) -> None:
        if not ctx.is_staff_acting_as_self:
            logger.warning(f"Non-staff admin attempted to {action} (principal={ctx.principal_id}, {context})")
            raise Unauthorized("Forbidden")

    def create_neighborhood(
        self,
        payload: CreateNeighborhoodRequest,
        ctx: AuthContext,
        principal: Optional[Principal] = None,
    ) -> Neighborhood:
        """
        Neighborhoods start with zero memberships. Whoever joins first is
        activated by the first-member bootstrap in request_join.
        """
        slug = slugify(payload.name)
        self._require_staff(ctx, "create neighborhood", slug=slug)
        store = self.resolver.store_for(ctx)

        if store.get_neighborhood_by_slug(slug) is not None:
            raise InvalidTransition(
                "A neighborhood with this name already exists. Please choose a different name.",
                slug=slug,
            )

        # created_by references public.users
        if principal is not None:
            store.ensure_user_profile(principal)

        neighborhood = store.insert_neighborhood({
            "name": payload.name,
            "slug": slug,
            "description": payload.description or None,
            "location": payload.location or None,
            "settings": {
                "require_approval": payload.require_approval,
                "allow_public_directory": False,
            },
            "created_by": ctx.principal_id,
        })
        logger.info(
            f"Staff admin {ctx.principal_id} created neighborhood {neighborhood.name} "
            f"({neighborhood.id}, require_approval={payload.require_approval})"
        )
        return neighborhood

    def add_member(self, user_id: str, neighborhood_id: str, ctx: AuthContext) -> Membership:
        self._require_staff(ctx, "add user to neighborhood", user_id=user_id, neighborhood_id=neighborhood_id)
        store = self.resolver.store_for(ctx)

        target = store.get_user(user_id)
        if target is None:
            raise NotFound("User not found", user_id=user_id)
        if is_staff_admin(target.email):
            raise InvalidTransition("Staff admins cannot hold memberships", user_id=user_id)

        neighborhood = store.get_neighborhood(neighborhood_id)
        if neighborhood is None:
            raise NotFound("Neighborhood not found", neighborhood_id=neighborhood_id)

        if store.find_membership(user_id, neighborhood_id) is not None:
            raise InvalidTransition("User is already a member of this neighborhood", user_id=user_id)

        membership = store.insert_membership(
            user_id, neighborhood_id, MembershipRole.member, MembershipStatus.active
        )
        logger.info(
            f"Staff admin {ctx.principal_id} added user {user_id} to neighborhood "
            f"{neighborhood.name} ({neighborhood_id})"
        )
        return membership

    def remove_member(self, user_id: str, membership_id: str, ctx: AuthContext) -> Membership:
        self._require_staff(ctx, "force-remove membership", user_id=user_id, membership_id=membership_id)
        store = self.resolver.store_for(ctx)

        membership = store.get_membership(membership_id)
        if membership is None or membership.user_id != user_id or membership.is_deleted:
            raise NotFound("Membership not found", membership_id=membership_id)

        removed = store.update_membership_status(
            membership.id, MembershipStatus.inactive, {"deleted_at": utcnow().isoformat()}
        )
        logger.info(
            f"Staff admin {ctx.principal_id} removed membership {membership_id} "
            f"(user {user_id}, neighborhood {membership.neighborhood_id})"
        )
        return removed
