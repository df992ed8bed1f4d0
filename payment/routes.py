# src/payment/routes.py
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from payment.services import PaymentService
from payment.webhooks import WebhookReconciler
from payment.gateway import StripeGateway, get_gateway
from payment.schemas import AccountStatusResponse, OnboardingRequest, UrlResponse, WebhookAck
from tipster.services import TipsterService
from auth.routes import get_current_user
from auth.models import User
from database import get_db

router = APIRouter(prefix="/payments", tags=["payments"])

@router.post("/connect/onboard", response_model=UrlResponse)
def start_onboarding(
    data: OnboardingRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_gateway)
):
    """Start Stripe Connect onboarding for the caller's tipster profile."""
    tipster = TipsterService.require_own_tipster(current_user, db)
    url = PaymentService.create_onboarding_link(tipster, data.return_url, data.refresh_url, db, gateway)
    return UrlResponse(url=url)

@router.get("/connect/status", response_model=AccountStatusResponse)
def get_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    tipster = TipsterService.require_own_tipster(current_user, db)
    return PaymentService.get_account_status(tipster)

@router.get("/connect/dashboard", response_model=UrlResponse)
def get_dashboard_link(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_gateway)
):
    """Login link to the Stripe Express dashboard."""
    tipster = TipsterService.require_own_tipster(current_user, db)
    return UrlResponse(url=PaymentService.create_dashboard_link(tipster, gateway))

@router.post("/connect/refresh", response_model=AccountStatusResponse)
def refresh_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_gateway)
):
    """Sync the payable account flags from Stripe."""
    tipster = TipsterService.require_own_tipster(current_user, db)
    return PaymentService.sync_account_status(tipster, db, gateway)

@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway)
):
    """Stripe event notifications. The signature is checked over the untouched body bytes."""
    payload = await request.body()
    return await run_in_threadpool(
        WebhookReconciler.process, payload, request.headers.get("stripe-signature"), db, gateway
    )
