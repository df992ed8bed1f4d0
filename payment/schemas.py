# src/payment/schemas.py
from pydantic import BaseModel
from typing import Optional

class AccountStatusResponse(BaseModel):
    """Payable account state for a tipster."""
    has_account: bool
    account_id: Optional[str]
    charges_enabled: bool
    payouts_enabled: bool
    onboarding_complete: bool

class OnboardingRequest(BaseModel):
    return_url: str
    refresh_url: str

class UrlResponse(BaseModel):
    url: str

class WebhookAck(BaseModel):
    received: bool = True
    event_id: Optional[str] = None
    outcome: str
