"""
Stripe Webhook Reconciler

Authenticates processor notifications over the raw request body, routes them
to handlers and applies the resulting ledger transitions. Each event is
handled in one transaction: remote lookups first, ledger writes and the
processed-event marker last.
"""

import logging
from typing import Any, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth.models import User
from offer.models import Offer
from payment.gateway import StripeGateway
from payment.models import WebhookEvent
from payment.schemas import WebhookAck
from payment.services import PaymentService
from subscription.ledger import SubscriptionLedger, LedgerOutcome, metadata_int
from subscription.models import SubscriptionStatus
from tipster.models import TipsterStripeAccount

logger = logging.getLogger(__name__)


def _object_id(value: Any) -> Optional[str]:
    """Remote references arrive either as an id string or as an expanded object."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return value.get("id")


def invoice_subscription_id(invoice: Mapping[str, Any]) -> Optional[str]:
    remote_id = _object_id(invoice.get("subscription"))
    if remote_id:
        return remote_id
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return _object_id(details.get("subscription"))


class WebhookReconciler:
    """
    Usage:
        ack = WebhookReconciler.process(raw_body, request.headers.get("stripe-signature"), db, gateway)
    """

    @staticmethod
    def process(payload: bytes, sig_header: Optional[str], db: Session, gateway: StripeGateway) -> WebhookAck:
        # raises WebhookSignatureError before anything is parsed
        event = gateway.construct_event(payload, sig_header)
        event_id = event["id"]
        event_type = event["type"]

        if db.get(WebhookEvent, event_id) is not None:
            logger.info(f"[WEBHOOK] Skipping already processed event {event_id} ({event_type})")
            return WebhookAck(event_id=event_id, outcome="duplicate")

        logger.info(f"[WEBHOOK] Processing event type: {event_type} (ID: {event_id})")
        for attempt in range(2):
            try:
                outcome = WebhookReconciler._route_event(event_type, event["data"]["object"], db, gateway)
                if outcome is None:
                    db.rollback()
                    logger.info(f"[WEBHOOK] Unhandled event type: {event_type}")
                    return WebhookAck(event_id=event_id, outcome="unhandled")
                db.add(WebhookEvent(id=event_id, event_type=event_type))
                db.commit()
                return WebhookAck(event_id=event_id, outcome=outcome.value)
            except IntegrityError:
                db.rollback()
                if db.get(WebhookEvent, event_id) is not None:
                    logger.info(f"[WEBHOOK] Event {event_id} was processed concurrently")
                    return WebhookAck(event_id=event_id, outcome="duplicate")
                if attempt == 0:
                    # a concurrent delivery created the same subscription; replay as an update
                    logger.warning(f"[WEBHOOK] Conflict while applying {event_id}, retrying")
                    continue
                raise
            except Exception:
                db.rollback()
                logger.error(f"[WEBHOOK] Error processing {event_type} ({event_id})", exc_info=True)
                raise

    @staticmethod
    def _route_event(event_type: str, obj, db: Session, gateway: StripeGateway) -> Optional[LedgerOutcome]:
        if event_type == "checkout.session.completed":
            return WebhookReconciler.handle_checkout_completed(obj, db, gateway)
        if event_type in ("customer.subscription.created", "customer.subscription.updated"):
            return SubscriptionLedger.apply_remote_snapshot(obj, db)
        if event_type == "customer.subscription.deleted":
            return SubscriptionLedger.set_status(obj["id"], SubscriptionStatus.CANCELLED, db)
        if event_type in ("invoice.paid", "invoice.payment_succeeded"):
            return WebhookReconciler.handle_invoice_paid(obj, db, gateway)
        if event_type == "invoice.payment_failed":
            return WebhookReconciler.handle_invoice_failed(obj, db)
        if event_type == "account.updated":
            return WebhookReconciler.handle_account_updated(obj, db)
        return None

    @staticmethod
    def handle_checkout_completed(session, db: Session, gateway: StripeGateway) -> LedgerOutcome:
        metadata = session.get("metadata") or {}
        user_id = metadata_int(metadata.get("user_id"))
        offer_id = metadata_int(metadata.get("offer_id"))
        if user_id is None or offer_id is None:
            logger.warning(f"Data integrity: checkout session {session.get('id')} has no user/offer metadata")
            return LedgerOutcome.IGNORED

        if session.get("mode") == "payment":
            if session.get("payment_status") not in ("paid", "no_payment_required"):
                logger.info(f"Checkout {session.get('id')} completed without payment yet, waiting")
                return LedgerOutcome.IGNORED
            if db.get(User, user_id) is None or db.get(Offer, offer_id) is None:
                logger.warning(
                    f"Data integrity: checkout {session.get('id')} for unknown user {user_id} or offer {offer_id}"
                )
                return LedgerOutcome.IGNORED
            return SubscriptionLedger.record_one_time_purchase(session["id"], user_id, offer_id, db)

        remote_id = _object_id(session.get("subscription"))
        if not remote_id:
            logger.warning(f"Subscription checkout {session.get('id')} carries no subscription id")
            return LedgerOutcome.IGNORED
        remote = gateway.retrieve_subscription(remote_id)
        return SubscriptionLedger.apply_remote_snapshot(remote, db, correlation=metadata)

    @staticmethod
    def handle_invoice_paid(invoice, db: Session, gateway: StripeGateway) -> LedgerOutcome:
        remote_id = invoice_subscription_id(invoice)
        if not remote_id:
            return LedgerOutcome.IGNORED
        remote = gateway.retrieve_subscription(remote_id)
        return SubscriptionLedger.apply_remote_snapshot(remote, db)

    @staticmethod
    def handle_invoice_failed(invoice, db: Session) -> LedgerOutcome:
        remote_id = invoice_subscription_id(invoice)
        if not remote_id:
            return LedgerOutcome.IGNORED
        return SubscriptionLedger.set_status(
            remote_id,
            SubscriptionStatus.PAST_DUE,
            db,
            only_from=(SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING),
        )

    @staticmethod
    def handle_account_updated(remote_account, db: Session) -> LedgerOutcome:
        account = db.query(TipsterStripeAccount).filter(
            TipsterStripeAccount.stripe_account_id == remote_account["id"]
        ).with_for_update().first()
        if not account:
            logger.info(f"account.updated for unknown account {remote_account['id']}")
            return LedgerOutcome.IGNORED
        PaymentService.apply_account_state(account, remote_account)
        db.flush()
        logger.info(f"Updated Stripe account status for {account.stripe_account_id}")
        return LedgerOutcome.UPDATED
