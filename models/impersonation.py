# models/impersonation.py

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from models.user import UserRecord


class ImpersonationSession(BaseModel):
    """Server-held delegation: one live session per staff principal."""
    session_id: str
    staff_user_id: str
    impersonated_user_id: str
    created_at: datetime
    expires_at: datetime


class ImpersonationContext(BaseModel):
    is_impersonating: bool = False
    staff_user_id: str
    staff_email: str = ""
    impersonated_user_id: Optional[str] = None
    impersonated_user: Optional[UserRecord] = None


class ImpersonationStart(BaseModel):
    session: ImpersonationSession
    token: str = Field(..., repr=False)
    redirect_to: str


# -----------------------------------------------------
# Request / response bodies
# -----------------------------------------------------
class StartImpersonationRequest(BaseModel):
    target_user_id: str
    redirect_to: Optional[str] = None


class ImpersonationResponse(BaseModel):
    success: bool
    redirect_to: Optional[str] = None
    error: Optional[str] = None
