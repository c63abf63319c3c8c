# -------------------------
# Enums
# -------------------------
from .enums import (
    MembershipRole,
    MembershipStatus,
    MembershipAction,
    DataAccessMode,
)

# -------------------------
# User Models (Supabase Auth + public.users)
# -------------------------
from .user import (
    Principal,
    UserRecord,
    ProfileUpdate,
    PrimaryNeighborhoodUpdate,
)

# -------------------------
# Membership Models
# -------------------------
from .membership import (
    Neighborhood,
    Membership,
    JoinResult,
    RoleChange,
    AddMemberRequest,
    CreateNeighborhoodRequest,
)

# -------------------------
# Impersonation Models
# -------------------------
from .impersonation import (
    ImpersonationSession,
    ImpersonationContext,
    ImpersonationStart,
    StartImpersonationRequest,
    ImpersonationResponse,
)

# -------------------------
# Post Models
# -------------------------
from .post import PostCreate, PostRead

__all__ = [
    # enums
    "MembershipRole",
    "MembershipStatus",
    "MembershipAction",
    "DataAccessMode",

    # users
    "Principal",
    "UserRecord",
    "ProfileUpdate",
    "PrimaryNeighborhoodUpdate",

    # memberships
    "Neighborhood",
    "Membership",
    "JoinResult",
    "RoleChange",
    "AddMemberRequest",
    "CreateNeighborhoodRequest",

    # impersonation
    "ImpersonationSession",
    "ImpersonationContext",
    "ImpersonationStart",
    "StartImpersonationRequest",
    "ImpersonationResponse",

    # posts
    "PostCreate",
    "PostRead",
]
