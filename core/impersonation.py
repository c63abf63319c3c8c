# core/impersonation.py

"""
Staff impersonation sessions.

Staff admins can impersonate regular users to see the app from their
perspective and act on their behalf (with an audit trail).

A session is held server-side in the session registry, one per staff
principal, and referenced from an HTTP-only cookie carrying a signed token
(staff id, subject id, session id, expiry). A token only counts while its
session id matches the registry entry, so starting a new session replaces
the previous one everywhere at once.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import JWTError, jwt

from core.cache import SimpleCache, get_session_registry
from core.config import settings
from core.errors import AccessCoreError, ForbiddenTarget, NotFound, Unauthorized
from core.logging_config import logger
from core.membership_store import MembershipStore
from core.roles import is_staff_admin
from core.supabase_client import get_supabase_client
from models.impersonation import ImpersonationContext, ImpersonationSession, ImpersonationStart
from models.user import Principal


_UNSET = object()


def _registry_key(staff_user_id: str) -> str:
    return f"impersonation:{staff_user_id}"


def _safe_redirect(path: Optional[str], default: str) -> str:
    # Only same-site relative paths; anything else falls back to the default
    if not path or not path.startswith("/") or path.startswith("//"):
        return default
    return path


def _default_admin_store() -> MembershipStore:
    # Target lookups always bypass RLS: the staff principal has no memberships
    return MembershipStore(get_supabase_client())


class ImpersonationManager:

    def __init__(
        self,
        registry: Optional[SimpleCache] = None,
        config=settings,
        admin_store_factory: Callable[[], MembershipStore] = _default_admin_store,
    ):
        self.registry = registry if registry is not None else get_session_registry()
        self.config = config
        self._admin_store_factory = admin_store_factory

    # ============================================================
    # Token encode / decode
    # ============================================================
    def _secret(self) -> str:
        secret = self.config.IMPERSONATION_SECRET
        if not secret:
            logger.error("IMPERSONATION_SECRET is not configured")
            raise AccessCoreError("Impersonation is not configured")
        return secret

    def encode_token(self, session: ImpersonationSession) -> str:
        claims = {
            "sub": session.staff_user_id,
            "imp": session.impersonated_user_id,
            "sid": session.session_id,
            "iat": session.created_at,
            "exp": session.expires_at,
        }
        return jwt.encode(claims, self._secret(), algorithm=self.config.IMPERSONATION_ALGORITHM)

    def _validate_token(self, token: str, staff_user_id: str) -> Optional[ImpersonationSession]:
        try:
            claims = jwt.decode(
                token,
                self._secret(),
                algorithms=[self.config.IMPERSONATION_ALGORITHM],
            )
        except JWTError as e:
            logger.info(f"Ignoring invalid impersonation token for staff {staff_user_id}: {e}")
            return None

        # A token minted for a different staff principal is never honored
        if claims.get("sub") != staff_user_id:
            return None

        session = self.registry.get(_registry_key(staff_user_id))
        if session is None or session.session_id != claims.get("sid"):
            return None

        return session

    # ============================================================
    # Start
    # ============================================================
    def start_impersonation(
        self,
        principal: Optional[Principal],
        target_user_id: str,
        redirect_to: Optional[str] = None,
        request=None,
    ) -> ImpersonationStart:
        if principal is None or not is_staff_admin(principal.email):
            logger.warning(
                f"Non-staff impersonation attempt by {principal.id if principal else 'anonymous'} "
                f"(target={target_user_id})"
            )
            raise Unauthorized("Unauthorized: Only staff admins can impersonate users")

        target = self._admin_store_factory().get_user(target_user_id)
        if target is None:
            raise NotFound("Target user not found", user_id=target_user_id)

        if target.id == principal.id or is_staff_admin(target.email):
            logger.warning(
                f"Staff {principal.id} attempted to impersonate staff admin {target.id}"
            )
            raise ForbiddenTarget("Cannot impersonate another staff admin")

        now = datetime.now(timezone.utc)
        max_age = self.config.IMPERSONATION_MAX_AGE_SECONDS
        session = ImpersonationSession(
            session_id=uuid.uuid4().hex,
            staff_user_id=principal.id,
            impersonated_user_id=target.id,
            created_at=now,
            expires_at=now + timedelta(seconds=max_age),
        )
        token = self.encode_token(session)

        previous = self.registry.replace(_registry_key(principal.id), session, max_age)
        if previous is not None:
            logger.info(
                f"Replacing impersonation of {previous.impersonated_user_id} "
                f"for staff {principal.id}"
            )

        logger.info(
            f"Staff impersonation started: staff={principal.id} ({principal.email}) "
            f"target={target.id} ({target.email})"
        )

        if request is not None:
            request.state.impersonation_context = ImpersonationContext(
                is_impersonating=True,
                staff_user_id=principal.id,
                staff_email=principal.email or "",
                impersonated_user_id=target.id,
                impersonated_user=target,
            )
            request.state.auth_context = None

        return ImpersonationStart(
            session=session,
            token=token,
            redirect_to=_safe_redirect(redirect_to, self.config.DEFAULT_LANDING_PATH),
        )

    # ============================================================
    # Read (memoized per request)
    # ============================================================
    def get_impersonation_context(self, request, principal: Optional[Principal]) -> Optional[ImpersonationContext]:
        """
        None for anyone who is not a staff admin. For staff, reports whether a
        live session exists and who the subject is.
        """
        cached = getattr(request.state, "impersonation_context", _UNSET)
        if cached is not _UNSET:
            return cached

        context = self._load_context(request, principal)
        request.state.impersonation_context = context
        return context

    def _load_context(self, request, principal: Optional[Principal]) -> Optional[ImpersonationContext]:
        if principal is None or not is_staff_admin(principal.email):
            return None

        not_impersonating = ImpersonationContext(
            is_impersonating=False,
            staff_user_id=principal.id,
            staff_email=principal.email or "",
        )

        token = request.cookies.get(self.config.IMPERSONATION_COOKIE_NAME)
        if not token:
            return not_impersonating

        session = self._validate_token(token, principal.id)
        if session is None:
            return not_impersonating

        # StoreFailure propagates: falling back to "not impersonating" would hand out staff authority
        subject = self._admin_store_factory().get_user(session.impersonated_user_id)

        if subject is None or is_staff_admin(subject.email):
            logger.warning(
                f"Dropping impersonation session {session.session_id}: "
                f"subject {session.impersonated_user_id} missing or now staff"
            )
            self.registry.delete(_registry_key(principal.id))
            return not_impersonating

        return ImpersonationContext(
            is_impersonating=True,
            staff_user_id=principal.id,
            staff_email=principal.email or "",
            impersonated_user_id=subject.id,
            impersonated_user=subject,
        )

    # ============================================================
    # End
    # ============================================================
    def end_impersonation(self, request, principal: Optional[Principal]) -> str:
        if principal is None or not is_staff_admin(principal.email):
            raise Unauthorized("Unauthorized")

        ended = self.registry.delete(_registry_key(principal.id))
        request.state.auth_context = None
        request.state.impersonation_context = ImpersonationContext(
            is_impersonating=False,
            staff_user_id=principal.id,
            staff_email=principal.email or "",
        )

        logger.info(
            f"Staff impersonation stopped: staff={principal.id} ({principal.email}) "
            f"target={ended.impersonated_user_id if ended else None}"
        )
        return self.config.STAFF_PANEL_PATH


# ============================================================
# Cookie helpers (HTTP boundary)
# ============================================================
def set_impersonation_cookie(response, start: ImpersonationStart, config=settings) -> None:
    response.set_cookie(
        key=config.IMPERSONATION_COOKIE_NAME,
        value=start.token,
        max_age=config.IMPERSONATION_MAX_AGE_SECONDS,
        httponly=True,
        secure=config.is_production,
        samesite="lax",
        path="/",
    )


def clear_impersonation_cookie(response, config=settings) -> None:
    response.delete_cookie(key=config.IMPERSONATION_COOKIE_NAME, path="/")


_manager = ImpersonationManager()


def get_impersonation_manager() -> ImpersonationManager:
    """FastAPI dependency; tests override it."""
    return _manager
