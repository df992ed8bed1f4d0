# src/subscription/schemas.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from subscription.models import SubscriptionStatus

class CheckoutRequest(BaseModel):
    """Schema for starting a checkout."""
    offer_id: int
    success_url: str
    cancel_url: str

class CheckoutResponse(BaseModel):
    url: str

class CancelRequest(BaseModel):
    immediately: bool = False

class CancelResponse(BaseModel):
    id: int
    status: SubscriptionStatus
    cancel_at_period_end: bool
    message: str

class SubscriptionOfferInfo(BaseModel):
    id: int
    name: str
    price: int
    tipster_id: int

    class Config:
        from_attributes = True

class SubscriptionResponse(BaseModel):
    """Schema for subscription response."""
    id: int
    user_id: int
    offer_id: int
    status: SubscriptionStatus
    current_period_end: Optional[datetime]
    trial_ends_at: Optional[datetime]
    cancel_at_period_end: bool
    created_at: datetime
    offer: SubscriptionOfferInfo

    class Config:
        from_attributes = True

class TipsterSubscriptionResponse(BaseModel):
    has_subscription: bool
    subscription: Optional[SubscriptionResponse] = None

class SubscriberResponse(BaseModel):
    """A subscriber as seen on the tipster dashboard."""
    subscription_id: int
    user_id: int
    username: str
    offer_id: int
    offer_name: str
    status: SubscriptionStatus
    created_at: datetime
