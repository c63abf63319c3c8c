# core/membership_store.py

"""
Membership store adapter.

Thin wrapper over a Supabase client. The same adapter runs in either
data-access mode: hand it the restricted client and row-level security
applies, hand it the elevated client and it does not. Choosing the mode is
the resolver's job, never the store's.

Every query for a live membership filters `deleted_at is null`.
"""

from datetime import datetime, timezone
from typing import Optional

from supabase import Client

from core.errors import StoreFailure
from core.logging_config import logger
from models.enums import MembershipRole, MembershipStatus
from models.membership import Membership, Neighborhood
from models.user import Principal, UserRecord


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rows(result) -> list:
    return (result.data if result is not None else None) or []


def _first(result) -> Optional[dict]:
    rows = _rows(result)
    return rows[0] if rows else None


class MembershipStore:

    def __init__(self, client: Optional[Client]):
        if client is None:
            raise StoreFailure("Supabase client not configured")
        self.client = client

    # =================================================================
    #  MEMBERSHIPS
    # =================================================================

    def find_membership(self, user_id: str, neighborhood_id: str) -> Optional[Membership]:
        """The live (not soft-deleted) membership for a user in a neighborhood."""
        try:
            result = (
                self.client.table("memberships")
                .select("*")
                .eq("user_id", user_id)
                .eq("neighborhood_id", neighborhood_id)
                .is_("deleted_at", "null")
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise StoreFailure("Failed to fetch membership", e, user_id=user_id, neighborhood_id=neighborhood_id)

        row = _first(result)
        return Membership(**row) if row else None

    def get_membership(self, membership_id: str) -> Optional[Membership]:
        try:
            result = (
                self.client.table("memberships")
                .select("*")
                .eq("id", membership_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise StoreFailure("Failed to fetch membership", e, membership_id=membership_id)

        row = _first(result)
        return Membership(**row) if row else None

    def update_membership(self, membership_id: str, changes: dict) -> Membership:
        try:
            result = (
                self.client.table("memberships")
                .update(changes)
                .eq("id", membership_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"Membership update failed (membership_id={membership_id}): {e}")
            raise StoreFailure("Failed to update membership", e, membership_id=membership_id)

        row = _first(result)
        if not row:
            # RLS hides rows the caller may not write; PostgREST reports that as zero rows
            raise StoreFailure("Membership update affected no rows", membership_id=membership_id)
        return Membership(**row)

    def update_membership_status(
        self,
        membership_id: str,
        status: MembershipStatus,
        extra: Optional[dict] = None,
    ) -> Membership:
        changes = {"status": str(status)}
        if extra:
            changes.update(extra)
        return self.update_membership(membership_id, changes)

    def insert_membership(
        self,
        user_id: str,
        neighborhood_id: str,
        role: MembershipRole,
        status: MembershipStatus,
        extra: Optional[dict] = None,
    ) -> Membership:
        data = {
            "user_id": user_id,
            "neighborhood_id": neighborhood_id,
            "role": str(role),
            "status": str(status),
            "joined_at": utcnow().isoformat(),
        }
        if extra:
            data.update(extra)

        try:
            result = self.client.table("memberships").insert(data).execute()
        except Exception as e:
            logger.error(
                f"Membership insert failed (user_id={user_id}, neighborhood_id={neighborhood_id}): {e}"
            )
            raise StoreFailure("Failed to create membership", e, user_id=user_id, neighborhood_id=neighborhood_id)

        row = _first(result)
        if not row:
            raise StoreFailure("Membership insert returned no row", user_id=user_id, neighborhood_id=neighborhood_id)
        return Membership(**row)

    def count_active_members(self, neighborhood_id: str) -> int:
        try:
            result = (
                self.client.table("memberships")
                .select("id", count="exact")
                .eq("neighborhood_id", neighborhood_id)
                .eq("status", MembershipStatus.active.value)
                .is_("deleted_at", "null")
                .execute()
            )
        except Exception as e:
            raise StoreFailure("Failed to count members", e, neighborhood_id=neighborhood_id)

        if result.count is not None:
            return result.count
        return len(_rows(result))

    def claim_bootstrap_activation(self, membership: Membership) -> Membership:
        """
        Activate a freshly inserted pending row if it is the neighborhood's
        first member.

        Insert-then-elect: the row is already persisted as pending, so two
        concurrent first joins both see each other here and only the oldest
        live row (joined_at, then id) is activated.
        """
        if self.count_active_members(membership.neighborhood_id) > 0:
            return membership

        try:
            result = (
                self.client.table("memberships")
                .select("id, status, joined_at")
                .eq("neighborhood_id", membership.neighborhood_id)
                .is_("deleted_at", "null")
                .in_("status", [MembershipStatus.pending.value, MembershipStatus.active.value])
                .order("joined_at")
                .order("id")
                .execute()
            )
        except Exception as e:
            raise StoreFailure("Failed to evaluate first member", e, membership_id=membership.id)

        rows = _rows(result)
        if any(r["status"] == MembershipStatus.active.value for r in rows):
            return membership
        if not rows or rows[0]["id"] != membership.id:
            return membership

        logger.info(
            f"First member of neighborhood {membership.neighborhood_id}: "
            f"auto-activating membership {membership.id}"
        )
        return self.update_membership_status(membership.id, MembershipStatus.active)

    # =================================================================
    #  LENDING LIBRARY CASCADE
    # =================================================================

    def delete_member_items(self, user_id: str, neighborhood_id: str) -> None:
        try:
            (
                self.client.table("items")
                .delete()
                .eq("owner_id", user_id)
                .eq("neighborhood_id", neighborhood_id)
                .execute()
            )
        except Exception as e:
            raise StoreFailure("Failed to delete items", e, user_id=user_id, neighborhood_id=neighborhood_id)

    # =================================================================
    #  NEIGHBORHOODS
    # =================================================================

    def get_neighborhood(self, neighborhood_id: str) -> Optional[Neighborhood]:
        return self._get_neighborhood_by("id", neighborhood_id)

    def get_neighborhood_by_slug(self, slug: str) -> Optional[Neighborhood]:
        return self._get_neighborhood_by("slug", slug)

    def _get_neighborhood_by(self, column: str, value: str) -> Optional[Neighborhood]:
        try:
            result = (
                self.client.table("neighborhoods")
                .select("id, slug, name, settings")
                .eq(column, value)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise StoreFailure("Failed to fetch neighborhood", e, **{column: value})

        row = _first(result)
        return Neighborhood(**row) if row else None

    def insert_neighborhood(self, data: dict) -> Neighborhood:
        try:
            result = self.client.table("neighborhoods").insert(data).execute()
        except Exception as e:
            logger.error(f"Neighborhood insert failed (slug={data.get('slug')}): {e}")
            raise StoreFailure("Failed to create neighborhood", e, slug=data.get("slug"))

        row = _first(result)
        if not row:
            raise StoreFailure("Neighborhood insert returned no row", slug=data.get("slug"))
        return Neighborhood(**row)

    # =================================================================
    #  USERS
    # =================================================================

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        try:
            result = (
                self.client.table("users")
                .select("*")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise StoreFailure("Failed to fetch user", e, user_id=user_id)

        row = _first(result)
        return UserRecord(**row) if row else None

    def ensure_user_profile(self, principal: Principal) -> UserRecord:
        """Create the public.users row for a principal that signed up before profiles existed."""
        existing = self.get_user(principal.id)
        if existing:
            return existing

        email = principal.email or ""
        data = {
            "id": principal.id,
            "email": email,
            "name": principal.name or (email.split("@")[0] if email else "") or "User",
        }

        try:
            result = self.client.table("users").insert(data).execute()
        except Exception as e:
            logger.error(f"Error creating user profile (user_id={principal.id}): {e}")
            raise StoreFailure("Failed to create user profile", e, user_id=principal.id)

        row = _first(result)
        return UserRecord(**row) if row else UserRecord(**data)

    def update_user(self, user_id: str, changes: dict) -> UserRecord:
        try:
            result = (
                self.client.table("users")
                .update(changes)
                .eq("id", user_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"User update failed (user_id={user_id}): {e}")
            raise StoreFailure("Failed to update user", e, user_id=user_id)

        row = _first(result)
        if not row:
            raise StoreFailure("User update affected no rows", user_id=user_id)
        return UserRecord(**row)

    # =================================================================
    #  POSTS
    # =================================================================

    def insert_post(self, payload: dict) -> dict:
        try:
            result = self.client.table("posts").insert(payload).execute()
        except Exception as e:
            logger.error(f"Post insert failed (author_id={payload.get('author_id')}): {e}")
            raise StoreFailure("Failed to create post", e, author_id=payload.get("author_id"))

        row = _first(result)
        if not row:
            raise StoreFailure("Post insert returned no row", author_id=payload.get("author_id"))
        return row
