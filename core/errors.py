# core/errors.py

"""
Error taxonomy for the access core.

Every failure the core reports is an AccessCoreError subclass carrying a
stable `code`, the HTTP status the boundary should use, and a message that
is safe to show to the user. main.py turns these into JSON responses (or a
sign-in redirect) so they never escape a request uncaught.
"""

from typing import Optional


class AccessCoreError(Exception):
    code = "SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "code": self.code}


class Unauthenticated(AccessCoreError):
    """No principal on the request. The boundary redirects to sign-in."""
    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Authentication required", **context):
        super().__init__(message, **context)


class Unauthorized(AccessCoreError):
    """Principal resolved but lacks authority for the requested action."""
    code = "FORBIDDEN"
    status_code = 403


# Transitions rejected by the lifecycle table are reported with the same class.
ForbiddenTransition = Unauthorized


class ForbiddenTarget(AccessCoreError):
    """Impersonation attempted against a user that may not be impersonated."""
    code = "FORBIDDEN_TARGET"
    status_code = 403


class SelfActionForbidden(AccessCoreError):
    code = "SELF_ACTION_FORBIDDEN"
    status_code = 403

    def __init__(self, message: str = "You cannot perform this action on your own membership", **context):
        super().__init__(message, **context)


class NotFound(AccessCoreError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidTransition(AccessCoreError):
    """The membership is not in a state that allows the requested action."""
    code = "CONFLICT"
    status_code = 409


class StoreFailure(AccessCoreError):
    code = "SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str, cause: Optional[Exception] = None, **context):
        if cause is not None:
            message = f"{message}: {extract_supabase_error(cause)}"
        super().__init__(message, **context)
        self.cause = cause


def extract_supabase_error(error: Exception) -> str:
    """
    Safely extract readable details from Supabase Python client errors.
    Handles:
      • PostgREST errors
      • GoTrue (Auth) errors
      • Generic Python exceptions
    """

    # Case 1: Supabase Auth / GoTrue / PostgREST APIError
    if hasattr(error, "message"):
        try:
            return str(error.message)
        except Exception:
            pass

    # Case 2: Supabase errors with args (common)
    if hasattr(error, "args") and error.args:
        try:
            return str(error.args[0])
        except Exception:
            pass

    # Case 3: Plain string fallback
    try:
        return str(error)
    except Exception:
        return "Unknown Supabase error"
