# src/access/services.py
import logging
from collections import defaultdict
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Dict, Iterable, List, Optional
from content.models import Tip, TipVisibility
from content.schemas import TipResponse
from offer.models import Offer
from subscription.models import Subscription, ENTITLED_STATUSES
from tipster.models import Tipster
from access.schemas import AccessDecision, ActiveSubscriptionInfo, TipCounts, TipsterAccessSummary
from offer.schemas import OfferResponse
from exceptions import NotFoundError
from config import settings

logger = logging.getLogger(__name__)

LOGIN_REQUIRED = "Login required for premium content"
SUBSCRIPTION_REQUIRED = "Subscription required to view this tip"

class AccessService:
    """
    Read-only entitlement checks over the subscription ledger.

    A viewer is entitled to a premium tip when they own the tipster profile or
    hold a TRIALING/ACTIVE subscription to one of its offers whose sport scope
    covers the tip. Nothing here writes to the database.
    """

    @staticmethod
    def _live_offers(viewer_id: int, tipster_ids: Iterable[int], db: Session) -> Dict[int, List[Offer]]:
        """Offers the viewer currently holds, grouped by tipster, in one query."""
        ids = set(tipster_ids)
        if not ids:
            return {}
        rows = db.query(Offer).join(Subscription, Subscription.offer_id == Offer.id).filter(
            Subscription.user_id == viewer_id,
            Subscription.status.in_(ENTITLED_STATUSES),
            Offer.tipster_id.in_(ids)
        ).all()
        scopes = defaultdict(list)
        for offer in rows:
            scopes[offer.tipster_id].append(offer)
        return scopes

    @staticmethod
    def _decide(viewer_id: Optional[int], tip: Tip, owner_user_id: int, offers: List[Offer]) -> AccessDecision:
        if tip.visibility == TipVisibility.FREE:
            return AccessDecision(can_view=True)
        if viewer_id is None:
            return AccessDecision(can_view=False, reason=LOGIN_REQUIRED)
        if owner_user_id == viewer_id:
            return AccessDecision(can_view=True)
        if any(offer.covers_sport(tip.sport) for offer in offers):
            return AccessDecision(can_view=True)
        return AccessDecision(can_view=False, reason=SUBSCRIPTION_REQUIRED)

    @staticmethod
    def can_view(viewer_id: Optional[int], tip: Tip, db: Session) -> AccessDecision:
        offers = []
        if viewer_id is not None and tip.visibility == TipVisibility.PREMIUM:
            offers = AccessService._live_offers(viewer_id, [tip.tipster_id], db).get(tip.tipster_id, [])
        return AccessService._decide(viewer_id, tip, tip.tipster.user_id, offers)

    @staticmethod
    def can_view_tip(viewer_id: Optional[int], tip_id: int, db: Session) -> AccessDecision:
        tip = db.query(Tip).filter(Tip.id == tip_id).first()
        if not tip:
            raise NotFoundError("Tip not found", details={"tip_id": tip_id})
        return AccessService.can_view(viewer_id, tip, db)

    @staticmethod
    def has_access_to_tipster(viewer_id: Optional[int], tipster_id: int, db: Session) -> bool:
        """Owner, or holder of any live subscription to the tipster regardless of sport scope."""
        if viewer_id is None:
            return False
        tipster = db.query(Tipster).filter(Tipster.id == tipster_id).first()
        if not tipster:
            return False
        if tipster.user_id == viewer_id:
            return True
        return bool(AccessService._live_offers(viewer_id, [tipster_id], db))

    @staticmethod
    def redact(tip: Tip) -> TipResponse:
        response = TipResponse.model_validate(tip)
        return response.model_copy(update={
            "prediction": settings.LOCKED_TIP_PLACEHOLDER,
            "explanation": None,
            "odds": 0,
            "is_locked": True,
        })

    @staticmethod
    def filter_for_viewer(viewer_id: Optional[int], tips: List[Tip], db: Session) -> List[TipResponse]:
        """
        Return every tip in ``tips``, in order, redacting the ones the viewer
        may not see. Locked tips are never dropped so the feed shows what a
        subscription would unlock.
        """
        scopes: Dict[int, List[Offer]] = {}
        owners: Dict[int, int] = {}
        if viewer_id is not None:
            premium_tipsters = {t.tipster_id for t in tips if t.visibility == TipVisibility.PREMIUM}
            scopes = AccessService._live_offers(viewer_id, premium_tipsters, db)
            if premium_tipsters:
                owners = dict(db.query(Tipster.id, Tipster.user_id).filter(Tipster.id.in_(premium_tipsters)).all())

        result = []
        for tip in tips:
            decision = AccessService._decide(viewer_id, tip, owners.get(tip.tipster_id), scopes.get(tip.tipster_id, []))
            if decision.can_view:
                result.append(TipResponse.model_validate(tip))
            else:
                result.append(AccessService.redact(tip))
        return result

    @staticmethod
    def tipster_access_summary(viewer_id: Optional[int], tipster_id: int, db: Session) -> TipsterAccessSummary:
        tipster = db.query(Tipster).filter(Tipster.id == tipster_id).first()
        if not tipster:
            raise NotFoundError("Tipster not found", details={"tipster_id": tipster_id})

        is_owner = viewer_id is not None and tipster.user_id == viewer_id

        active = None
        if viewer_id is not None and not is_owner:
            subscription = db.query(Subscription).join(Offer).filter(
                Subscription.user_id == viewer_id,
                Offer.tipster_id == tipster_id,
                Subscription.status.in_(ENTITLED_STATUSES)
            ).order_by(Subscription.created_at.desc()).first()
            if subscription:
                active = ActiveSubscriptionInfo(
                    id=subscription.id,
                    offer_name=subscription.offer.name,
                    expires_at=subscription.current_period_end,
                    cancel_at_period_end=subscription.cancel_at_period_end,
                )

        available = []
        if not is_owner:
            offers = db.query(Offer).filter(
                Offer.tipster_id == tipster_id,
                Offer.is_active.is_(True)
            ).order_by(Offer.price.asc(), Offer.id.asc()).all()
            available = [OfferResponse.model_validate(o) for o in offers]

        counts = dict(db.query(Tip.visibility, func.count(Tip.id)).filter(
            Tip.tipster_id == tipster_id
        ).group_by(Tip.visibility).all())
        free = counts.get(TipVisibility.FREE, 0)
        premium = counts.get(TipVisibility.PREMIUM, 0)

        return TipsterAccessSummary(
            tipster_id=tipster_id,
            is_owner=is_owner,
            has_access=AccessService.has_access_to_tipster(viewer_id, tipster_id, db),
            active_subscription=active,
            available_offers=available,
            tip_counts=TipCounts(free=free, premium=premium, total=free + premium),
        )

    @staticmethod
    def accessible_tipster_ids(user_id: int, db: Session) -> List[int]:
        """Tipsters the user currently holds a live subscription to."""
        rows = db.query(Offer.tipster_id).join(Subscription, Subscription.offer_id == Offer.id).filter(
            Subscription.user_id == user_id,
            Subscription.status.in_(ENTITLED_STATUSES)
        ).distinct().all()
        return [row[0] for row in rows]
