# src/offer/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from offer.services import OfferService, OfferDeletionOutcome
from offer.schemas import OfferCreate, OfferUpdate, OfferResponse, OfferWithCountResponse, OfferDeleteResponse
from payment.gateway import StripeGateway, get_gateway
from tipster.services import TipsterService
from auth.routes import get_current_user
from auth.models import User
from database import get_db

router = APIRouter(prefix="/offers", tags=["offers"])

@router.post("/", response_model=OfferResponse)
def create_offer(
    data: OfferCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_gateway)
):
    """Create an offer for the caller's tipster profile."""
    tipster = TipsterService.require_own_tipster(current_user, db)
    return OfferService.create_offer(tipster.id, current_user, data, db, gateway)

@router.get("/mine", response_model=List[OfferWithCountResponse])
def get_my_offers(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return OfferService.get_my_offers(current_user, db)

@router.get("/tipster/{tipster_id}", response_model=List[OfferResponse])
def list_tipster_offers(tipster_id: int, db: Session = Depends(get_db)):
    """Active offers of a tipster, cheapest first."""
    TipsterService.get_tipster(tipster_id, db)
    return OfferService.list_offers(tipster_id, False, db)

@router.get("/{offer_id}", response_model=OfferWithCountResponse)
def get_offer(offer_id: int, db: Session = Depends(get_db)):
    offer = OfferService.get_offer(offer_id, db)
    return OfferService.with_count(offer, db)

@router.patch("/{offer_id}", response_model=OfferResponse)
def update_offer(
    offer_id: int,
    data: OfferUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_gateway)
):
    """Update an offer. Price and duration are locked once the offer has had subscribers."""
    return OfferService.update_offer(offer_id, current_user, data, db, gateway)

@router.delete("/{offer_id}", response_model=OfferDeleteResponse)
def delete_offer(
    offer_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    outcome = OfferService.delete_offer(offer_id, current_user, db)
    if outcome == OfferDeletionOutcome.DEACTIVATED:
        message = "Offer has existing subscriptions and was deactivated instead"
    else:
        message = "Offer deleted"
    return OfferDeleteResponse(outcome=outcome.value, message=message)
