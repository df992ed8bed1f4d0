# src/subscription/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from subscription.services import SubscriptionService
from subscription.schemas import (
    CheckoutRequest, CheckoutResponse, CancelRequest, CancelResponse,
    SubscriptionResponse, TipsterSubscriptionResponse, SubscriberResponse,
)
from payment.gateway import StripeGateway, get_gateway
from tipster.services import TipsterService
from auth.routes import get_current_user
from auth.models import User
from database import get_db

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])

@router.post("/checkout", response_model=CheckoutResponse)
def create_checkout(
    data: CheckoutRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_gateway)
):
    """Create a checkout session for an offer."""
    url = SubscriptionService.create_checkout(current_user, data.offer_id, data.success_url, data.cancel_url, db, gateway)
    return CheckoutResponse(url=url)

@router.get("/", response_model=List[SubscriptionResponse])
def get_my_subscriptions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Retrieve the caller's subscriptions."""
    return SubscriptionService.get_user_subscriptions(current_user.id, db)

@router.get("/subscribers", response_model=List[SubscriberResponse])
def get_my_subscribers(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Subscribers of the caller's tipster profile."""
    tipster = TipsterService.require_own_tipster(current_user, db)
    return SubscriptionService.get_tipster_subscribers(tipster, current_user, db)

@router.get("/tipster/{tipster_id}", response_model=TipsterSubscriptionResponse)
def get_subscription_to_tipster(
    tipster_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    subscription = SubscriptionService.get_active_subscription_to_tipster(current_user.id, tipster_id, db)
    return TipsterSubscriptionResponse(
        has_subscription=subscription is not None,
        subscription=SubscriptionResponse.model_validate(subscription) if subscription else None,
    )

@router.post("/{subscription_id}/cancel", response_model=CancelResponse)
def cancel_subscription(
    subscription_id: int,
    data: CancelRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_gateway)
):
    """Cancel a subscription immediately or at the end of the period."""
    return SubscriptionService.cancel_subscription(subscription_id, current_user, data.immediately, db, gateway)
