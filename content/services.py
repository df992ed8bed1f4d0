# src/content/services.py
import logging
from datetime import datetime
from sqlalchemy.orm import Session
from typing import Optional, List
from content.models import Tip
from content.schemas import TipCreate, TipUpdate, TipResultUpdate, TipResponse, FeedFilter
from access.services import AccessService
from follow.services import FollowService
from tipster.services import TipsterService
from auth.models import User
from exceptions import ValidationError, NotFoundError, ConflictingStateError

logger = logging.getLogger(__name__)

NON_NULLABLE_FIELDS = ("event", "prediction", "odds", "stake", "visibility")

class TipService:
    @staticmethod
    def _validate_amounts(odds: Optional[float], stake: Optional[float]) -> None:
        if odds is not None and odds <= 0:
            raise ValidationError("Odds must be positive", details={"odds": odds})
        if stake is not None and stake <= 0:
            raise ValidationError("Stake must be positive", details={"stake": stake})

    @staticmethod
    def create_tip(data: TipCreate, user: User, db: Session) -> Tip:
        """Publish a tip on the caller's tipster profile."""
        tipster = TipsterService.require_own_tipster(user, db)
        TipService._validate_amounts(data.odds, data.stake)

        tip = Tip(
            tipster_id=tipster.id,
            event=data.event,
            prediction=data.prediction,
            odds=data.odds,
            stake=data.stake,
            explanation=data.explanation,
            sport=data.sport,
            visibility=data.visibility,
        )
        db.add(tip)
        db.commit()
        db.refresh(tip)
        logger.info(f"Tipster {tipster.id} published tip {tip.id} ({tip.visibility.value})")
        return tip

    @staticmethod
    def _get(tip_id: int, db: Session) -> Tip:
        tip = db.query(Tip).filter(Tip.id == tip_id).first()
        if not tip:
            raise NotFoundError("Tip not found", details={"tip_id": tip_id})
        return tip

    @staticmethod
    def _feed_tipster_ids(viewer: Optional[User], feed_filter: FeedFilter, db: Session) -> Optional[List[int]]:
        """Tipsters a filtered feed is restricted to, or None for the unfiltered feed."""
        if feed_filter == FeedFilter.ALL:
            return None
        if viewer is None:
            return []
        if feed_filter == FeedFilter.FOLLOWING:
            return FollowService.followed_tipster_ids(viewer.id, db)
        return AccessService.accessible_tipster_ids(viewer.id, db)

    @staticmethod
    def get_feed(
            viewer: Optional[User],
            tipster_id: Optional[int],
            db: Session,
            limit: int = 50,
            feed_filter: FeedFilter = FeedFilter.ALL,
    ) -> List[TipResponse]:
        """Newest tips first, premium ones redacted for viewers without access."""
        query = db.query(Tip)
        if tipster_id:
            query = query.filter(Tip.tipster_id == tipster_id)
        allowed = TipService._feed_tipster_ids(viewer, feed_filter, db)
        if allowed is not None:
            if not allowed:
                return []
            query = query.filter(Tip.tipster_id.in_(allowed))
        tips = query.order_by(Tip.created_at.desc(), Tip.id.desc()).limit(limit).all()
        return AccessService.filter_for_viewer(viewer.id if viewer else None, tips, db)

    @staticmethod
    def get_tip(tip_id: int, viewer: Optional[User], db: Session) -> TipResponse:
        tip = TipService._get(tip_id, db)
        return AccessService.filter_for_viewer(viewer.id if viewer else None, [tip], db)[0]

    @staticmethod
    def update_tip(tip_id: int, user: User, patch: TipUpdate, db: Session) -> Tip:
        tip = TipService._get(tip_id, db)
        TipsterService.require_owner(tip.tipster, user, "update tips")
        if tip.result is not None:
            raise ConflictingStateError(
                "Settled tips cannot be edited",
                details={"tip_id": tip.id, "result": tip.result.value},
            )

        changes = patch.model_dump(exclude_unset=True)
        for field in NON_NULLABLE_FIELDS:
            if field in changes and changes[field] is None:
                del changes[field]
        TipService._validate_amounts(changes.get("odds"), changes.get("stake"))

        for field, value in changes.items():
            setattr(tip, field, value)
        db.commit()
        db.refresh(tip)
        return tip

    @staticmethod
    def delete_tip(tip_id: int, user: User, db: Session) -> None:
        tip = TipService._get(tip_id, db)
        TipsterService.require_owner(tip.tipster, user, "delete tips")
        db.delete(tip)
        db.commit()
        logger.info(f"Deleted tip {tip_id}")

    @staticmethod
    def mark_result(tip_id: int, user: User, data: TipResultUpdate, db: Session) -> Tip:
        """Settle a tip. A result is final once recorded."""
        tip = TipService._get(tip_id, db)
        TipsterService.require_owner(tip.tipster, user, "mark results")
        if tip.result is not None:
            raise ConflictingStateError(
                "Tip result has already been marked",
                details={"tip_id": tip.id, "result": tip.result.value},
            )
        tip.result = data.result
        tip.settled_at = datetime.utcnow()
        db.commit()
        db.refresh(tip)
        logger.info(f"Tip {tip.id} settled as {tip.result.value}")
        return tip
