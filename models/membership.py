# models/membership.py

from typing import Optional, Any, Dict
from datetime import datetime
import re

from pydantic import BaseModel, Field, field_validator

from models.enums import MembershipRole, MembershipStatus


# ===============================================================
# NEIGHBORHOOD
# ===============================================================

class Neighborhood(BaseModel):
    id: str
    slug: str
    name: str
    settings: Optional[Dict[str, Any]] = None
    created_by: Optional[str] = None

    @property
    def require_approval(self) -> bool:
        # Missing setting means approval is required; only an explicit false opts out
        return (self.settings or {}).get("require_approval") is not False


# ===============================================================
# MEMBERSHIP
# ===============================================================

class Membership(BaseModel):
    """
    One (user, neighborhood) row.

    `status` is the lifecycle state; `deleted_at` is the separate soft-delete
    bit. Queries for live memberships filter on `deleted_at is null`.
    """
    id: str
    user_id: str
    neighborhood_id: str
    role: MembershipRole = MembershipRole.member
    status: MembershipStatus = MembershipStatus.pending
    joined_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    staff_actor_id: Optional[str] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_active(self) -> bool:
        return self.status == MembershipStatus.active and not self.is_deleted

    @property
    def is_admin(self) -> bool:
        """Admin role carries authority only on a live, active row."""
        return self.role == MembershipRole.admin and self.is_active


class JoinResult(BaseModel):
    membership: Membership
    rejoined: bool = False


class RoleChange(BaseModel):
    role: MembershipRole


class AddMemberRequest(BaseModel):
    neighborhood_id: str


def slugify(name: str) -> str:
    """Lowercase, runs of anything but letters and digits become one hyphen."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class CreateNeighborhoodRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    location: Optional[str] = None
    require_approval: bool = True

    @field_validator("name")
    @classmethod
    def name_must_slugify(cls, v: str) -> str:
        v = v.strip()
        if not slugify(v):
            raise ValueError("Name must contain at least one letter or digit")
        return v
