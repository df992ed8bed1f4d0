# src/tipster/profiles.py
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional
from tipster.models import Tipster
from tipster.schemas import TipsterProfileResponse, TipsterResponse
from content.models import Tip
from follow.services import FollowService
from payment.services import PaymentService

class TipsterProfileService:
    """Public tipster profiles with their audience figures, built in batched queries."""

    @staticmethod
    def build_profiles(tipsters: List[Tipster], viewer_id: Optional[int], db: Session) -> List[TipsterProfileResponse]:
        ids = [t.id for t in tipsters]
        if not ids:
            return []
        tip_counts = dict(db.query(Tip.tipster_id, func.count(Tip.id)).filter(
            Tip.tipster_id.in_(ids)
        ).group_by(Tip.tipster_id).all())
        follower_counts = FollowService.follower_counts(ids, db)
        followed = set(FollowService.followed_tipster_ids(viewer_id, db)) if viewer_id is not None else set()

        return [
            TipsterProfileResponse(
                **TipsterResponse.model_validate(t).model_dump(),
                username=t.user.username,
                tip_count=tip_counts.get(t.id, 0),
                follower_count=follower_counts.get(t.id, 0),
                active_subscribers=PaymentService.count_active_subscribers(t.id, db),
                is_following=t.id in followed,
            )
            for t in tipsters
        ]

    @staticmethod
    def build_profile(tipster: Tipster, viewer_id: Optional[int], db: Session) -> TipsterProfileResponse:
        return TipsterProfileService.build_profiles([tipster], viewer_id, db)[0]
