# src/tipster/schemas.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

class TipsterCreate(BaseModel):
    """Schema for creating a tipster profile."""
    display_name: str = Field(min_length=1, max_length=80)
    bio: Optional[str] = None

class TipsterUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    bio: Optional[str] = None

class TipsterResponse(BaseModel):
    id: int
    user_id: int
    display_name: str
    bio: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True

class TipsterProfileResponse(TipsterResponse):
    """Public profile with audience figures; ``is_following`` is false for anonymous viewers."""
    username: str
    tip_count: int = 0
    follower_count: int = 0
    active_subscribers: int = 0
    is_following: bool = False
