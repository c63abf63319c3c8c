from enum import Enum


class BaseStrEnum(str, Enum):
    """
    Base enum that serializes cleanly to a string.
    """

    def __str__(self):
        return str(self.value)


# -----------------------------------------------------
# MEMBERSHIP ROLE
# -----------------------------------------------------
class MembershipRole(BaseStrEnum):
    """Role inside a single neighborhood. Admin only counts while active."""

    member = "member"
    admin = "admin"


# -----------------------------------------------------
# MEMBERSHIP STATUS
# -----------------------------------------------------
class MembershipStatus(BaseStrEnum):
    """Lifecycle state of a membership row (soft delete is tracked separately)."""

    pending = "pending"
    active = "active"
    inactive = "inactive"
    moved_out = "moved_out"


# -----------------------------------------------------
# MEMBERSHIP ACTION
# -----------------------------------------------------
class MembershipAction(BaseStrEnum):
    """Transitions the lifecycle state machine accepts."""

    approve = "approve"
    decline = "decline"
    promote_to_admin = "promote_to_admin"
    demote_to_member = "demote_to_member"
    mark_moved_out = "mark_moved_out"
    rejoin = "rejoin"


# -----------------------------------------------------
# DATA ACCESS MODE
# -----------------------------------------------------
class DataAccessMode(BaseStrEnum):
    """
    restricted -> anon key + the principal's JWT, row-level security applies
    elevated   -> service role key, row-level security bypassed (staff only)
    """

    restricted = "restricted"
    elevated = "elevated"
