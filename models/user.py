# models/user.py

from typing import Optional
from pydantic import BaseModel, Field


# ===============================================================
# AUTHENTICATED PRINCIPAL (Supabase Auth)
# ===============================================================

class Principal(BaseModel):
    """
    Identity validated from the Supabase session token.
    Owned by Supabase Auth; the access core only reads it.
    """
    id: str
    email: Optional[str] = None
    name: Optional[str] = None

    # Raw JWT, needed to build a row-level-security client for this principal
    access_token: Optional[str] = Field(None, repr=False)


# ===============================================================
# PUBLIC.USERS PROFILE ROW
# ===============================================================

class UserRecord(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    bio: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    unit: Optional[str] = None
    avatar_url: Optional[str] = None
    primary_neighborhood_id: Optional[str] = None


class ProfileUpdate(BaseModel):
    """
    Partial profile edit. Only fields that were sent are written.
    """
    name: Optional[str] = None
    bio: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    unit: Optional[str] = None
    avatar_url: Optional[str] = None


class PrimaryNeighborhoodUpdate(BaseModel):
    neighborhood_id: str
