from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from supabase import Client

from core.auth_context import AuthContext, AuthContextResolver, get_auth_resolver
from core.errors import AccessCoreError, Unauthenticated
from core.logging_config import logger
from core.membership_lifecycle import MembershipLifecycle
from core.supabase_client import get_supabase_client
from models.user import Principal


bearer_scheme = HTTPBearer(auto_error=False)


# ============================================================
# AUTH DECODING (Supabase: validates JWT)
# ============================================================
def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[Principal]:
    """
    Returns the Principal for a valid Supabase session token, None otherwise.
    Never raises for a missing or invalid token.
    """
    if not credentials:
        return None

    token = credentials.credentials

    client: Client = get_supabase_client()
    if not client:
        raise AccessCoreError("Supabase client not configured")

    # ---------------------------------------------------------
    # Validate JWT via Supabase GoTrue
    # ---------------------------------------------------------
    try:
        auth_resp = client.auth.get_user(token)
    except Exception as e:
        logger.info(f"Rejected session token: {e}")
        return None

    if not auth_resp or not auth_resp.user:
        return None

    auth_user = auth_resp.user
    metadata = auth_user.user_metadata or {}

    return Principal(
        id=auth_user.id,
        email=auth_user.email,
        name=metadata.get("name"),
        access_token=token,
    )


def get_current_principal(
    principal: Optional[Principal] = Depends(get_optional_principal),
) -> Principal:
    """Hard precondition of every protected route: no principal, no request."""
    if principal is None:
        raise Unauthenticated()
    return principal


# ============================================================
# EFFECTIVE IDENTITY (resolved once per request)
# ============================================================
def get_auth_context(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    resolver: AuthContextResolver = Depends(get_auth_resolver),
) -> AuthContext:
    return resolver.resolve(principal, request)


def get_lifecycle(
    resolver: AuthContextResolver = Depends(get_auth_resolver),
) -> MembershipLifecycle:
    return MembershipLifecycle(resolver)
