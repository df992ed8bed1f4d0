# src/offer/services.py
import enum
import logging
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional
from offer.models import Offer
from offer.schemas import OfferCreate, OfferUpdate, OfferWithCountResponse, OfferResponse
from subscription.models import Subscription, SubscriptionStatus, OPEN_STATUSES
from tipster.services import TipsterService
from payment.gateway import StripeGateway
from payment.services import PaymentService
from auth.models import User
from exceptions import ServiceError, ValidationError, NotFoundError, ConflictingStateError, PayeeNotReady
from config import settings

logger = logging.getLogger(__name__)

# fields that change what a subscriber pays or how often
ECONOMIC_FIELDS = ("price", "duration")
NON_NULLABLE_FIELDS = ("name", "price", "duration", "sports", "is_active")

class OfferDeletionOutcome(str, enum.Enum):
    DELETED = "deleted"
    # the offer has subscription history and was deactivated instead
    DEACTIVATED = "deactivated"

class OfferService:
    @staticmethod
    def _validate_price(price: int) -> None:
        if price < settings.MIN_OFFER_PRICE:
            raise ValidationError(
                f"Price must be at least {settings.MIN_OFFER_PRICE} minor units",
                details={"price": price, "minimum": settings.MIN_OFFER_PRICE},
            )

    @staticmethod
    def _validate_trial(trial_days: Optional[int]) -> None:
        if trial_days is not None and trial_days < 0:
            raise ValidationError("Trial days cannot be negative", details={"trial_days": trial_days})

    @staticmethod
    def create_offer(tipster_id: int, user: User, data: OfferCreate, db: Session, gateway: StripeGateway) -> Offer:
        """Create an offer and its remote product/price; the local row is removed if the sync fails."""
        tipster = TipsterService.get_tipster(tipster_id, db)
        TipsterService.require_owner(tipster, user, "create offers")

        if not tipster.stripe_account or not tipster.stripe_account.onboarding_complete:
            raise PayeeNotReady("Please complete Stripe onboarding before creating offers")

        OfferService._validate_price(data.price)
        OfferService._validate_trial(data.trial_days)

        offer = Offer(
            tipster_id=tipster.id,
            name=data.name,
            description=data.description,
            price=data.price,
            currency=settings.DEFAULT_CURRENCY,
            duration=data.duration,
            sports=[s.value for s in data.sports],
            trial_days=data.trial_days,
            is_active=True,
        )
        db.add(offer)
        db.commit()
        db.refresh(offer)

        try:
            PaymentService.sync_offer_product(offer, db, gateway)
        except Exception:
            logger.error(f"Product sync failed for offer {offer.id}, rolling back", exc_info=True)
            db.rollback()
            db.delete(offer)
            db.commit()
            raise

        logger.info(f"Created offer {offer.id} for tipster {tipster.id}")
        return offer

    @staticmethod
    def get_offer(offer_id: int, db: Session) -> Offer:
        offer = db.query(Offer).filter(Offer.id == offer_id).first()
        if not offer:
            raise NotFoundError("Offer not found", details={"offer_id": offer_id})
        return offer

    @staticmethod
    def list_offers(tipster_id: int, include_inactive: bool, db: Session) -> List[Offer]:
        query = db.query(Offer).filter(Offer.tipster_id == tipster_id)
        if not include_inactive:
            query = query.filter(Offer.is_active.is_(True))
        return query.order_by(Offer.price.asc(), Offer.id.asc()).all()

    @staticmethod
    def count_live_subscribers(offer_id: int, db: Session) -> int:
        """Subscriptions to the offer that are still running (trialing, active or past due)."""
        return db.query(func.count(Subscription.id)).filter(
            Subscription.offer_id == offer_id,
            Subscription.status.in_(OPEN_STATUSES)
        ).scalar() or 0

    @staticmethod
    def count_subscription_history(offer_id: int, db: Session) -> int:
        """Every subscription that ever referenced the offer, terminal ones included."""
        return db.query(func.count(Subscription.id)).filter(Subscription.offer_id == offer_id).scalar() or 0

    @staticmethod
    def count_active_subscribers(offer_id: int, db: Session) -> int:
        return db.query(func.count(Subscription.id)).filter(
            Subscription.offer_id == offer_id,
            Subscription.status == SubscriptionStatus.ACTIVE
        ).scalar() or 0

    @staticmethod
    def with_count(offer: Offer, db: Session) -> OfferWithCountResponse:
        return OfferWithCountResponse(
            **OfferResponse.model_validate(offer).model_dump(),
            active_subscribers=OfferService.count_active_subscribers(offer.id, db),
        )

    @staticmethod
    def get_my_offers(user: User, db: Session) -> List[OfferWithCountResponse]:
        """Every offer of the caller's tipster profile, newest first, with subscriber counts."""
        tipster = TipsterService.require_own_tipster(user, db)
        offers = db.query(Offer).filter(Offer.tipster_id == tipster.id).order_by(Offer.created_at.desc()).all()
        return [OfferService.with_count(o, db) for o in offers]

    @staticmethod
    def update_offer(offer_id: int, user: User, patch: OfferUpdate, db: Session, gateway: StripeGateway) -> Offer:
        offer = OfferService.get_offer(offer_id, db)
        TipsterService.require_owner(offer.tipster, user, "update offers")

        changes = patch.model_dump(exclude_unset=True)
        for field in NON_NULLABLE_FIELDS:
            if field in changes and changes[field] is None:
                del changes[field]

        if any(field in changes for field in ECONOMIC_FIELDS):
            history = OfferService.count_subscription_history(offer.id, db)
            if history > 0:
                raise ConflictingStateError(
                    "Cannot change price or duration once the offer has had subscribers. "
                    "Create a new offer instead and deactivate this one.",
                    details={
                        "offer_id": offer.id,
                        "active_subscribers": OfferService.count_live_subscribers(offer.id, db),
                        "subscriptions": history,
                    },
                )

        if "price" in changes:
            OfferService._validate_price(changes["price"])
        if "trial_days" in changes:
            OfferService._validate_trial(changes["trial_days"])
        if "sports" in changes:
            changes["sports"] = [s.value if hasattr(s, "value") else s for s in changes["sports"]]

        economics_changed = any(
            field in changes and changes[field] != getattr(offer, field) for field in ECONOMIC_FIELDS
        )
        for field, value in changes.items():
            setattr(offer, field, value)
        db.commit()
        db.refresh(offer)

        if economics_changed:
            try:
                PaymentService.sync_offer_product(offer, db, gateway)
            except ServiceError as e:
                # the next checkout recreates product and price
                logger.error(f"Failed to resync offer {offer.id} after price change: {e.message}")
                db.rollback()
                offer.stripe_product_id = None
                offer.stripe_price_id = None
                db.commit()
                db.refresh(offer)

        return offer

    @staticmethod
    def delete_offer(offer_id: int, user: User, db: Session) -> OfferDeletionOutcome:
        offer = OfferService.get_offer(offer_id, db)
        TipsterService.require_owner(offer.tipster, user, "delete offers")

        history = OfferService.count_subscription_history(offer.id, db)
        if history > 0:
            offer.is_active = False
            db.commit()
            logger.info(f"Offer {offer.id} has {history} subscriptions, deactivated instead of deleted")
            return OfferDeletionOutcome.DEACTIVATED

        db.delete(offer)
        db.commit()
        logger.info(f"Deleted offer {offer_id}")
        return OfferDeletionOutcome.DELETED
