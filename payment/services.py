# src/payment/services.py
import logging
from sqlalchemy.orm import Session
from sqlalchemy import func

from auth.models import User
from offer.models import Offer
from subscription.models import Subscription, SubscriptionStatus
from tipster.models import Tipster, TipsterStripeAccount
from payment.fees import fee_percent, application_fee_amount
from payment.gateway import StripeGateway, DURATION_INTERVALS
from payment.schemas import AccountStatusResponse
from exceptions import NotFoundError, PayeeNotReady, ConflictingStateError

logger = logging.getLogger(__name__)

class PaymentService:
    # -------------------------------------------------------------------------
    # Connect onboarding
    # -------------------------------------------------------------------------

    @staticmethod
    def ensure_connect_account(tipster: Tipster, db: Session, gateway: StripeGateway) -> TipsterStripeAccount:
        """Return the tipster's payable account, creating it remotely and locally if absent."""
        if tipster.stripe_account:
            return tipster.stripe_account

        account_id = gateway.create_connect_account(
            email=tipster.user.email,
            metadata={"tipster_id": str(tipster.id), "user_id": str(tipster.user_id)},
        )
        account = TipsterStripeAccount(
            tipster_id=tipster.id,
            stripe_account_id=account_id,
            charges_enabled=False,
            payouts_enabled=False,
            onboarding_complete=False,
        )
        db.add(account)
        db.commit()
        db.refresh(tipster)
        logger.info(f"Created Connect account {account_id} for tipster {tipster.id}")
        return account

    @staticmethod
    def create_onboarding_link(tipster: Tipster, return_url: str, refresh_url: str, db: Session, gateway: StripeGateway) -> str:
        account = PaymentService.ensure_connect_account(tipster, db, gateway)
        return gateway.create_onboarding_link(account.stripe_account_id, return_url, refresh_url)

    @staticmethod
    def create_dashboard_link(tipster: Tipster, gateway: StripeGateway) -> str:
        account = tipster.stripe_account
        if not account:
            raise NotFoundError("No Stripe account found. Complete onboarding first.")
        if not account.onboarding_complete:
            raise PayeeNotReady("Stripe onboarding not complete")
        return gateway.create_login_link(account.stripe_account_id)

    @staticmethod
    def get_account_status(tipster: Tipster) -> AccountStatusResponse:
        account = tipster.stripe_account
        if not account:
            return AccountStatusResponse(
                has_account=False,
                account_id=None,
                charges_enabled=False,
                payouts_enabled=False,
                onboarding_complete=False,
            )
        return AccountStatusResponse(
            has_account=True,
            account_id=account.stripe_account_id,
            charges_enabled=account.charges_enabled,
            payouts_enabled=account.payouts_enabled,
            onboarding_complete=account.onboarding_complete,
        )

    @staticmethod
    def apply_account_state(account: TipsterStripeAccount, remote_account) -> None:
        charges_enabled = bool(remote_account.get("charges_enabled"))
        account.charges_enabled = charges_enabled
        account.payouts_enabled = bool(remote_account.get("payouts_enabled"))
        account.onboarding_complete = charges_enabled and bool(remote_account.get("details_submitted"))

    @staticmethod
    def sync_account_status(tipster: Tipster, db: Session, gateway: StripeGateway) -> AccountStatusResponse:
        """Refresh the payable account flags from the processor."""
        account = tipster.stripe_account
        if not account:
            raise NotFoundError("No Stripe account found")
        remote_account = gateway.retrieve_account(account.stripe_account_id)
        PaymentService.apply_account_state(account, remote_account)
        db.commit()
        db.refresh(account)
        return PaymentService.get_account_status(tipster)

    # -------------------------------------------------------------------------
    # Products and prices
    # -------------------------------------------------------------------------

    @staticmethod
    def sync_offer_product(offer: Offer, db: Session, gateway: StripeGateway) -> str:
        """Create a product and price for the offer on the platform account and cache the refs."""
        account = offer.tipster.stripe_account
        if not account:
            raise PayeeNotReady("Tipster has no Stripe account")

        product_id = gateway.create_product(
            name=offer.name,
            description=offer.description,
            metadata={
                "offer_id": str(offer.id),
                "tipster_id": str(offer.tipster_id),
                "connected_account_id": account.stripe_account_id,
            },
        )
        price_id = gateway.create_price(
            product_id=product_id,
            currency=offer.currency,
            unit_amount=offer.price,
            interval=DURATION_INTERVALS.get(offer.duration.value),
            metadata={"offer_id": str(offer.id), "tipster_id": str(offer.tipster_id)},
        )
        offer.stripe_product_id = product_id
        offer.stripe_price_id = price_id
        db.commit()
        db.refresh(offer)
        logger.info(f"Synced offer {offer.id} to product {product_id} / price {price_id}")
        return price_id

    @staticmethod
    def ensure_offer_price(offer: Offer, db: Session, gateway: StripeGateway) -> str:
        """Return a price id that resolves remotely, recreating product and price if the cached one drifted."""
        price_id = offer.stripe_price_id
        if price_id and gateway.price_exists(price_id):
            return price_id
        if price_id:
            logger.warning(f"Price {price_id} for offer {offer.id} no longer resolves, recreating")
        return PaymentService.sync_offer_product(offer, db, gateway)

    # -------------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------------

    @staticmethod
    def get_or_create_customer(user: User, db: Session, gateway: StripeGateway) -> str:
        if user.stripe_customer_id:
            return user.stripe_customer_id
        customer_id = gateway.create_customer(email=user.email, metadata={"user_id": str(user.id)})
        user.stripe_customer_id = customer_id
        db.commit()
        return customer_id

    @staticmethod
    def count_active_subscribers(tipster_id: int, db: Session) -> int:
        """Point-in-time count of the tipster's ACTIVE subscriptions, read without locking."""
        return db.query(func.count(Subscription.id)).join(Offer).filter(
            Offer.tipster_id == tipster_id,
            Subscription.status == SubscriptionStatus.ACTIVE
        ).scalar() or 0

    @staticmethod
    def create_checkout_session(
            user: User,
            offer: Offer,
            success_url: str,
            cancel_url: str,
            db: Session,
            gateway: StripeGateway
    ) -> str:
        if not offer.is_active:
            raise ConflictingStateError("Offer is not active", details={"offer_id": offer.id})

        account = offer.tipster.stripe_account
        if not account or not account.stripe_account_id:
            raise PayeeNotReady("Tipster payment setup incomplete", details={"tipster_id": offer.tipster_id})
        if not account.charges_enabled:
            raise PayeeNotReady("Tipster cannot receive payments yet", details={"tipster_id": offer.tipster_id})

        price_id = PaymentService.ensure_offer_price(offer, db, gateway)
        customer_id = PaymentService.get_or_create_customer(user, db, gateway)

        subscriber_count = PaymentService.count_active_subscribers(offer.tipster_id, db)
        percent = fee_percent(subscriber_count)
        metadata = {
            "user_id": str(user.id),
            "offer_id": str(offer.id),
            "tipster_id": str(offer.tipster_id),
        }
        logger.info(f"Creating checkout for user {user.id}, offer {offer.id}: {subscriber_count} active subscribers, fee {percent}%")

        return gateway.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            one_time=offer.is_one_time,
            success_url=success_url,
            cancel_url=cancel_url,
            destination_account_id=account.stripe_account_id,
            fee_percent=percent,
            fee_amount=application_fee_amount(offer.price, percent),
            trial_days=offer.trial_days,
            metadata=metadata,
        )
