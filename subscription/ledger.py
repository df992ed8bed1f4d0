"""
Subscription Ledger

The authoritative local record of every user/offer relationship and the only
place that changes a subscription's status. Ledger methods flush but never
commit: the caller commits once every remote verification is done, so a crash
before the commit leaves the ledger as if nothing had been processed.
"""

import enum
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from auth.models import User
from offer.models import Offer
from subscription.models import Subscription, SubscriptionStatus, OPEN_STATUSES, TERMINAL_STATUSES

logger = logging.getLogger(__name__)

REMOTE_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELLED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
}


class LedgerOutcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    IGNORED = "ignored"


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    """Unix seconds to a naive UTC datetime, the form stored in the database."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


def remote_period_end(remote: Mapping[str, Any]) -> Optional[datetime]:
    """Current period end of a remote subscription; newer API versions carry it on the items."""
    value = remote.get("current_period_end")
    if not value:
        items = remote.get("items") or {}
        data = items.get("data") or []
        if data:
            value = data[0].get("current_period_end")
    return from_timestamp(value)


def metadata_int(value: Any) -> Optional[int]:
    """Integer from correlation metadata, or None when it is missing or malformed."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class SubscriptionLedger:
    @staticmethod
    def lock_by_remote_id(remote_id: str, db: Session) -> Optional[Subscription]:
        """Fetch the row for a remote subscription id, holding a row lock until commit."""
        return db.query(Subscription).filter(
            Subscription.stripe_subscription_id == remote_id
        ).with_for_update().first()

    @staticmethod
    def lock_by_id(subscription_id: int, db: Session) -> Optional[Subscription]:
        return db.query(Subscription).filter(Subscription.id == subscription_id).with_for_update().first()

    @staticmethod
    def find_open(user_id: int, offer_id: int, db: Session) -> Optional[Subscription]:
        """The non-terminal subscription for a (user, offer) pair, if any."""
        return db.query(Subscription).filter(
            Subscription.user_id == user_id,
            Subscription.offer_id == offer_id,
            Subscription.status.in_(OPEN_STATUSES)
        ).first()

    @staticmethod
    def open_subscription(
            user_id: int,
            offer_id: int,
            status: SubscriptionStatus,
            current_period_end: Optional[datetime],
            trial_ends_at: Optional[datetime],
            db: Session,
            stripe_subscription_id: Optional[str] = None,
            stripe_checkout_session_id: Optional[str] = None,
            cancel_at_period_end: bool = False
    ) -> Optional[Subscription]:
        """
        Create the ledger row for a processor-confirmed purchase.

        Terminal rows for the same pair are cleared first. Returns None, with an
        integrity warning, if the pair already has a non-terminal subscription.
        """
        existing = SubscriptionLedger.find_open(user_id, offer_id, db)
        if existing:
            logger.warning(
                f"Data integrity: user {user_id} already holds open subscription {existing.id} "
                f"to offer {offer_id}; not creating another (remote={stripe_subscription_id}, "
                f"session={stripe_checkout_session_id})"
            )
            return None

        db.query(Subscription).filter(
            Subscription.user_id == user_id,
            Subscription.offer_id == offer_id,
            Subscription.status.in_(TERMINAL_STATUSES)
        ).delete(synchronize_session=False)

        subscription = Subscription(
            user_id=user_id,
            offer_id=offer_id,
            status=status,
            stripe_subscription_id=stripe_subscription_id,
            stripe_checkout_session_id=stripe_checkout_session_id,
            current_period_end=current_period_end,
            trial_ends_at=trial_ends_at,
            cancel_at_period_end=cancel_at_period_end,
        )
        db.add(subscription)
        db.flush()
        return subscription

    @staticmethod
    def apply_remote_snapshot(
            remote: Mapping[str, Any],
            db: Session,
            correlation: Optional[Mapping[str, Any]] = None
    ) -> LedgerOutcome:
        """
        Overwrite local state with a full remote subscription snapshot.

        An existing row keyed by the remote id is updated in place. Otherwise a
        row is created if user/offer correlation metadata is available (from the
        subscription itself or ``correlation``); without it the snapshot is
        dropped with a data-integrity warning.
        """
        remote_id = remote.get("id")
        remote_status = remote.get("status")
        status = REMOTE_STATUS_MAP.get(remote_status)
        if status is None:
            logger.warning(f"Unknown remote status '{remote_status}' for subscription {remote_id}, snapshot skipped")
            return LedgerOutcome.IGNORED

        period_end = remote_period_end(remote)
        trial_end = from_timestamp(remote.get("trial_end"))
        cancel_at_period_end = bool(remote.get("cancel_at_period_end"))

        existing = SubscriptionLedger.lock_by_remote_id(remote_id, db)
        if existing:
            if (existing.status == status and existing.current_period_end == period_end
                    and existing.trial_ends_at == trial_end
                    and existing.cancel_at_period_end == cancel_at_period_end):
                return LedgerOutcome.UNCHANGED
            logger.info(f"Subscription {existing.id} ({remote_id}): {existing.status.value} -> {status.value}")
            existing.status = status
            existing.current_period_end = period_end
            existing.trial_ends_at = trial_end
            existing.cancel_at_period_end = cancel_at_period_end
            db.flush()
            return LedgerOutcome.UPDATED

        metadata = dict(remote.get("metadata") or {})
        for key, value in (correlation or {}).items():
            metadata.setdefault(key, value)
        user_id = metadata_int(metadata.get("user_id"))
        offer_id = metadata_int(metadata.get("offer_id"))
        if user_id is None or offer_id is None:
            logger.warning(f"Data integrity: no local record and no user/offer metadata for subscription {remote_id}, dropped")
            return LedgerOutcome.IGNORED

        if status in TERMINAL_STATUSES:
            logger.info(f"Terminal snapshot for unknown subscription {remote_id}, nothing to record")
            return LedgerOutcome.IGNORED

        if db.get(User, user_id) is None or db.get(Offer, offer_id) is None:
            logger.warning(f"Data integrity: subscription {remote_id} references unknown user {user_id} or offer {offer_id}, dropped")
            return LedgerOutcome.IGNORED

        created = SubscriptionLedger.open_subscription(
            user_id=user_id,
            offer_id=offer_id,
            status=status,
            current_period_end=period_end,
            trial_ends_at=trial_end,
            db=db,
            stripe_subscription_id=remote_id,
            cancel_at_period_end=cancel_at_period_end,
        )
        if created is None:
            return LedgerOutcome.IGNORED
        logger.info(f"Created subscription {created.id} ({remote_id}) for user {user_id}, offer {offer_id}")
        return LedgerOutcome.CREATED

    @staticmethod
    def record_one_time_purchase(session_id: str, user_id: int, offer_id: int, db: Session) -> LedgerOutcome:
        """Lifetime purchases enter ACTIVE with no period end, keyed by checkout session."""
        existing = db.query(Subscription).filter(
            Subscription.stripe_checkout_session_id == session_id
        ).with_for_update().first()
        if existing:
            return LedgerOutcome.UNCHANGED

        created = SubscriptionLedger.open_subscription(
            user_id=user_id,
            offer_id=offer_id,
            status=SubscriptionStatus.ACTIVE,
            current_period_end=None,
            trial_ends_at=None,
            db=db,
            stripe_checkout_session_id=session_id,
        )
        if created is None:
            return LedgerOutcome.IGNORED
        logger.info(f"Created lifetime subscription {created.id} for user {user_id}, offer {offer_id}")
        return LedgerOutcome.CREATED

    @staticmethod
    def set_status(remote_id: str, status: SubscriptionStatus, db: Session, only_from=None) -> LedgerOutcome:
        """
        Force the status of the row keyed by ``remote_id``.

        ``only_from`` restricts the transition to rows currently in one of the
        given statuses.
        """
        existing = SubscriptionLedger.lock_by_remote_id(remote_id, db)
        if not existing:
            logger.warning(f"Data integrity: status {status.value} for unknown subscription {remote_id}, dropped")
            return LedgerOutcome.IGNORED
        if existing.status == status:
            return LedgerOutcome.UNCHANGED
        if only_from is not None and existing.status not in only_from:
            logger.info(f"Subscription {existing.id} is {existing.status.value}, not moving to {status.value}")
            return LedgerOutcome.UNCHANGED
        logger.info(f"Subscription {existing.id} ({remote_id}): {existing.status.value} -> {status.value}")
        existing.status = status
        db.flush()
        return LedgerOutcome.UPDATED

    @staticmethod
    def expire_lapsed(db: Session, now: Optional[datetime] = None) -> int:
        """
        Move ACTIVE subscriptions without a remote agreement whose period has
        ended to EXPIRED. Rows with no period end (lifetime) are never touched.
        """
        now = now or datetime.utcnow()
        count = db.query(Subscription).filter(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.stripe_subscription_id.is_(None),
            Subscription.current_period_end.isnot(None),
            Subscription.current_period_end < now
        ).update({Subscription.status: SubscriptionStatus.EXPIRED}, synchronize_session=False)
        return count
