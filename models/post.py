# models/post.py

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class PostCreate(BaseModel):
    content: str = Field(..., min_length=1, description="Bulletin post body")
    image_url: Optional[str] = None
    expires_at: Optional[datetime] = None


class PostRead(BaseModel):
    id: str
    neighborhood_id: str
    author_id: str
    content: str
    image_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    staff_actor_id: Optional[str] = None
    created_at: Optional[datetime] = None
