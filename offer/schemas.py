# src/offer/schemas.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from offer.models import SubscriptionDuration, Sport

class OfferCreate(BaseModel):
    """Schema for creating an offer."""
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None
    price: int  # minor units, 999 = 9.99
    duration: SubscriptionDuration
    sports: List[Sport] = []  # empty = every sport
    trial_days: Optional[int] = None

class OfferUpdate(BaseModel):
    """Partial update; only the fields sent are applied."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    price: Optional[int] = None
    duration: Optional[SubscriptionDuration] = None
    sports: Optional[List[Sport]] = None
    trial_days: Optional[int] = None
    is_active: Optional[bool] = None

class OfferResponse(BaseModel):
    """Schema for offer response."""
    id: int
    tipster_id: int
    name: str
    description: Optional[str]
    price: int
    currency: str
    duration: SubscriptionDuration
    sports: List[Sport]
    trial_days: Optional[int]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class OfferWithCountResponse(OfferResponse):
    active_subscribers: int

class OfferDeleteResponse(BaseModel):
    outcome: str
    message: str
