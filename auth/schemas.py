# src/auth/schemas.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

class UserResponse(BaseModel):
    """Schema for user response."""
    id: int
    username: str
    email: str
    tipster_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
