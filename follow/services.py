# src/follow/services.py
import logging
from sqlalchemy.orm import Session
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from typing import Dict, Iterable, List
from follow.models import Follow
from tipster.services import TipsterService
from auth.models import User
from exceptions import ValidationError, NotFoundError, ConflictingStateError

logger = logging.getLogger(__name__)

class FollowService:
    @staticmethod
    def _find(user_id: int, tipster_id: int, db: Session):
        return db.query(Follow).filter(Follow.user_id == user_id, Follow.tipster_id == tipster_id).first()

    @staticmethod
    def follow_tipster(user: User, tipster_id: int, db: Session) -> Follow:
        tipster = TipsterService.get_tipster(tipster_id, db)
        if tipster.user_id == user.id:
            raise ValidationError("You cannot follow yourself")
        if FollowService._find(user.id, tipster_id, db):
            raise ConflictingStateError("Already following this tipster", details={"tipster_id": tipster_id})

        follow = Follow(user_id=user.id, tipster_id=tipster_id)
        db.add(follow)
        try:
            db.commit()
        except IntegrityError:
            # a concurrent request followed first
            db.rollback()
            raise ConflictingStateError("Already following this tipster", details={"tipster_id": tipster_id})
        db.refresh(follow)
        logger.info(f"User {user.id} follows tipster {tipster_id}")
        return follow

    @staticmethod
    def unfollow_tipster(user: User, tipster_id: int, db: Session) -> None:
        follow = FollowService._find(user.id, tipster_id, db)
        if not follow:
            raise NotFoundError("Not following this tipster", details={"tipster_id": tipster_id})
        db.delete(follow)
        db.commit()
        logger.info(f"User {user.id} unfollowed tipster {tipster_id}")

    @staticmethod
    def followed_tipster_ids(user_id: int, db: Session) -> List[int]:
        rows = db.query(Follow.tipster_id).filter(Follow.user_id == user_id).order_by(Follow.created_at.desc()).all()
        return [row[0] for row in rows]

    @staticmethod
    def is_following(user_id: int, tipster_id: int, db: Session) -> bool:
        return FollowService._find(user_id, tipster_id, db) is not None

    @staticmethod
    def follower_counts(tipster_ids: Iterable[int], db: Session) -> Dict[int, int]:
        """Follower count per tipster, zero for tipsters nobody follows."""
        ids = set(tipster_ids)
        if not ids:
            return {}
        counts = dict(db.query(Follow.tipster_id, func.count(Follow.id)).filter(
            Follow.tipster_id.in_(ids)
        ).group_by(Follow.tipster_id).all())
        return {tipster_id: counts.get(tipster_id, 0) for tipster_id in ids}

    @staticmethod
    def follower_count(tipster_id: int, db: Session) -> int:
        return FollowService.follower_counts([tipster_id], db)[tipster_id]
