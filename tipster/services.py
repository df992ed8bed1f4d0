# src/tipster/services.py
import logging
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional
from tipster.models import Tipster
from tipster.schemas import TipsterCreate, TipsterUpdate
from content.models import Tip
from follow.models import Follow
from offer.models import Offer
from subscription.models import Subscription
from auth.models import User
from exceptions import ConflictingStateError, ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)

class TipsterService:
    @staticmethod
    def _require_free_name(display_name: str, db: Session, exclude_id: Optional[int] = None) -> None:
        query = db.query(Tipster).filter(Tipster.display_name == display_name)
        if exclude_id is not None:
            query = query.filter(Tipster.id != exclude_id)
        if query.first():
            raise ConflictingStateError("Display name already taken")

    @staticmethod
    def create_tipster(data: TipsterCreate, user: User, db: Session) -> Tipster:
        if db.query(Tipster).filter(Tipster.user_id == user.id).first():
            raise ConflictingStateError("You already have a tipster profile")
        TipsterService._require_free_name(data.display_name, db)
        tipster = Tipster(user_id=user.id, display_name=data.display_name, bio=data.bio)
        db.add(tipster)
        db.commit()
        db.refresh(tipster)
        logger.info(f"Created tipster {tipster.id} for user {user.id}")
        return tipster

    @staticmethod
    def get_tipster(tipster_id: int, db: Session) -> Tipster:
        tipster = db.query(Tipster).filter(Tipster.id == tipster_id).first()
        if not tipster:
            raise NotFoundError("Tipster not found", details={"tipster_id": tipster_id})
        return tipster

    @staticmethod
    def list_tipsters(db: Session) -> List[Tipster]:
        return db.query(Tipster).order_by(Tipster.created_at.desc(), Tipster.id.desc()).all()

    @staticmethod
    def get_by_user(user_id: int, db: Session) -> Optional[Tipster]:
        return db.query(Tipster).filter(Tipster.user_id == user_id).first()

    @staticmethod
    def require_own_tipster(user: User, db: Session) -> Tipster:
        """The caller's own profile, or NotFoundError if they have none."""
        tipster = TipsterService.get_by_user(user.id, db)
        if not tipster:
            raise NotFoundError("You need a tipster profile first")
        return tipster

    @staticmethod
    def require_owner(tipster: Tipster, user: User, action: str) -> None:
        if tipster.user_id != user.id:
            raise ForbiddenError(f"You can only {action} for your own tipster profile")

    @staticmethod
    def update_tipster(tipster_id: int, user: User, patch: TipsterUpdate, db: Session) -> Tipster:
        tipster = TipsterService.get_tipster(tipster_id, db)
        TipsterService.require_owner(tipster, user, "edit the profile")

        changes = patch.model_dump(exclude_unset=True)
        if changes.get("display_name") is None:
            changes.pop("display_name", None)
        if "display_name" in changes:
            TipsterService._require_free_name(changes["display_name"], db, exclude_id=tipster.id)

        for field, value in changes.items():
            setattr(tipster, field, value)
        db.commit()
        db.refresh(tipster)
        return tipster

    @staticmethod
    def delete_tipster(tipster_id: int, user: User, db: Session) -> None:
        """
        Remove a profile with its tips, follows and offers. Refused once any
        offer has been subscribed to, since the ledger must keep those rows.
        """
        tipster = TipsterService.get_tipster(tipster_id, db)
        TipsterService.require_owner(tipster, user, "delete the profile")

        history = db.query(func.count(Subscription.id)).join(Offer).filter(
            Offer.tipster_id == tipster.id
        ).scalar() or 0
        if history > 0:
            raise ConflictingStateError(
                "Profiles with subscription history cannot be deleted. Deactivate your offers instead.",
                details={"tipster_id": tipster.id, "subscriptions": history},
            )

        for follow in db.query(Follow).filter(Follow.tipster_id == tipster.id).all():
            db.delete(follow)
        for tip in tipster.tips:
            db.delete(tip)
        for offer in tipster.offers:
            db.delete(offer)
        if tipster.stripe_account:
            # the remote Connect account is left to the tipster
            db.delete(tipster.stripe_account)
        db.delete(tipster)
        db.commit()
        logger.info(f"Deleted tipster {tipster_id} of user {user.id}")
