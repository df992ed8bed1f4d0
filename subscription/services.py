# src/subscription/services.py
import logging
from sqlalchemy.orm import Session, joinedload
from typing import List, Optional
from subscription.models import Subscription, SubscriptionStatus, ENTITLED_STATUSES
from subscription.ledger import SubscriptionLedger
from subscription.schemas import SubscriberResponse, CancelResponse
from offer.models import Offer
from tipster.models import Tipster
from payment.gateway import StripeGateway
from payment.services import PaymentService
from auth.models import User
from exceptions import NotFoundError, ForbiddenError, ConflictingStateError, ValidationError

logger = logging.getLogger(__name__)

class SubscriptionService:
    @staticmethod
    def create_checkout(
            user: User,
            offer_id: int,
            success_url: str,
            cancel_url: str,
            db: Session,
            gateway: StripeGateway
    ) -> str:
        """
        Start a hosted checkout for ``offer_id`` and return the redirect URL.

        No subscription row is written here; the ledger entry appears only once
        the processor confirms the purchase through a webhook.
        """
        offer = db.query(Offer).filter(Offer.id == offer_id).first()
        if not offer:
            raise NotFoundError("Offer not found", details={"offer_id": offer_id})

        if offer.tipster.user_id == user.id:
            raise ValidationError("You cannot subscribe to your own offers")

        existing = SubscriptionLedger.find_open(user.id, offer.id, db)
        if existing:
            raise ConflictingStateError(
                f"You already have a {existing.status.value.lower()} subscription to this offer",
                details={"subscription_id": existing.id, "status": existing.status.value},
            )

        return PaymentService.create_checkout_session(user, offer, success_url, cancel_url, db, gateway)

    @staticmethod
    def cancel_subscription(
            subscription_id: int,
            user: User,
            immediately: bool,
            db: Session,
            gateway: StripeGateway
    ) -> CancelResponse:
        subscription = SubscriptionLedger.lock_by_id(subscription_id, db)
        if not subscription:
            raise NotFoundError("Subscription not found", details={"subscription_id": subscription_id})
        if subscription.user_id != user.id:
            raise ForbiddenError("You can only cancel your own subscriptions")
        if subscription.status not in ENTITLED_STATUSES:
            raise ConflictingStateError(
                "Subscription is not active",
                details={"subscription_id": subscription.id, "status": subscription.status.value},
            )

        try:
            if subscription.stripe_subscription_id:
                gateway.cancel_subscription(subscription.stripe_subscription_id, immediately)

            if immediately:
                subscription.status = SubscriptionStatus.CANCELLED
            else:
                subscription.cancel_at_period_end = True
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(subscription)
        logger.info(f"User {user.id} cancelled subscription {subscription.id} (immediately={immediately})")

        return CancelResponse(
            id=subscription.id,
            status=subscription.status,
            cancel_at_period_end=subscription.cancel_at_period_end,
            message="Subscription cancelled immediately" if immediately
            else "Subscription will be cancelled at the end of the current period",
        )

    @staticmethod
    def get_user_subscriptions(user_id: int, db: Session) -> List[Subscription]:
        return db.query(Subscription).options(joinedload(Subscription.offer)).filter(
            Subscription.user_id == user_id
        ).order_by(Subscription.created_at.desc()).all()

    @staticmethod
    def get_active_subscription_to_tipster(user_id: int, tipster_id: int, db: Session) -> Optional[Subscription]:
        return db.query(Subscription).join(Offer).options(joinedload(Subscription.offer)).filter(
            Subscription.user_id == user_id,
            Offer.tipster_id == tipster_id,
            Subscription.status.in_(ENTITLED_STATUSES)
        ).order_by(Subscription.created_at.desc()).first()

    @staticmethod
    def get_tipster_subscribers(tipster: Tipster, user: User, db: Session) -> List[SubscriberResponse]:
        if tipster.user_id != user.id:
            raise ForbiddenError("You can only view your own subscribers")
        rows = db.query(Subscription).join(Offer).options(
            joinedload(Subscription.user), joinedload(Subscription.offer)
        ).filter(
            Offer.tipster_id == tipster.id,
            Subscription.status.in_(ENTITLED_STATUSES)
        ).order_by(Subscription.created_at.desc()).all()
        return [
            SubscriberResponse(
                subscription_id=s.id,
                user_id=s.user_id,
                username=s.user.username,
                offer_id=s.offer_id,
                offer_name=s.offer.name,
                status=s.status,
                created_at=s.created_at,
            )
            for s in rows
        ]

    @staticmethod
    def expire_lapsed_subscriptions(db: Session) -> int:
        """Periodic sweep entry point; safe to run on any schedule."""
        count = SubscriptionLedger.expire_lapsed(db)
        db.commit()
        if count:
            logger.info(f"Expired {count} lapsed subscriptions")
        return count
