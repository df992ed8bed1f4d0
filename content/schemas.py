# src/content/schemas.py
import enum
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from content.models import TipVisibility, TipResult
from offer.models import Sport

class FeedFilter(str, enum.Enum):
    ALL = "all"
    # tipsters the viewer follows
    FOLLOWING = "following"
    # tipsters the viewer holds a live subscription to
    SUBSCRIBED = "subscribed"

class TipCreate(BaseModel):
    """Schema for publishing a tip."""
    event: str = Field(min_length=1)
    prediction: str = Field(min_length=1)
    odds: float
    stake: float = 1
    explanation: Optional[str] = None
    sport: Optional[Sport] = None
    visibility: TipVisibility = TipVisibility.PREMIUM

class TipUpdate(BaseModel):
    """Partial update; only the fields sent are applied."""
    event: Optional[str] = Field(default=None, min_length=1)
    prediction: Optional[str] = Field(default=None, min_length=1)
    odds: Optional[float] = None
    stake: Optional[float] = None
    explanation: Optional[str] = None
    sport: Optional[Sport] = None
    visibility: Optional[TipVisibility] = None

class TipResultUpdate(BaseModel):
    result: TipResult

class TipResponse(BaseModel):
    """A tip as seen by a given viewer; locked tips carry a placeholder prediction."""
    id: int
    tipster_id: int
    event: str
    prediction: str
    odds: float
    stake: float
    explanation: Optional[str]
    sport: Optional[Sport]
    visibility: TipVisibility
    result: Optional[TipResult] = None
    settled_at: Optional[datetime] = None
    created_at: datetime
    is_locked: bool = False

    class Config:
        from_attributes = True
