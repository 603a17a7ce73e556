"""
Profile schemas.
"""
from datetime import datetime
from typing import List, Optional
import uuid
from pydantic import BaseModel, Field


class ProfileResponse(BaseModel):
    user_id: uuid.UUID
    username: str
    display_name: str
    avatar_url: Optional[str] = None
    status: str
    is_online: bool
    last_seen: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    avatar_url: Optional[str] = None


class ProfileListResponse(BaseModel):
    items: List[ProfileResponse]
