# src/access/schemas.py
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional
from offer.schemas import OfferResponse

class AccessDecision(BaseModel):
    can_view: bool
    reason: Optional[str] = None

class ActiveSubscriptionInfo(BaseModel):
    id: int
    offer_name: str
    expires_at: Optional[datetime]
    cancel_at_period_end: bool

class TipCounts(BaseModel):
    free: int = 0
    premium: int = 0
    total: int = 0

class TipsterAccessSummary(BaseModel):
    """What a viewer can see of a tipster and what they could buy."""
    tipster_id: int
    is_owner: bool
    has_access: bool
    active_subscription: Optional[ActiveSubscriptionInfo] = None
    available_offers: List[OfferResponse] = []
    tip_counts: TipCounts
