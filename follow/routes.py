# src/follow/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from follow.services import FollowService
from follow.schemas import FollowStatus, FollowedTipsters
from tipster.services import TipsterService
from auth.routes import get_current_user
from auth.models import User
from database import get_db

router = APIRouter(prefix="/follow", tags=["follow"])

def _status(user: User, tipster_id: int, db: Session) -> FollowStatus:
    return FollowStatus(
        tipster_id=tipster_id,
        is_following=FollowService.is_following(user.id, tipster_id, db),
        follower_count=FollowService.follower_count(tipster_id, db),
    )

@router.get("/", response_model=FollowedTipsters)
def get_followed_tipsters(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Tipsters the caller follows, most recent first."""
    return FollowedTipsters(tipster_ids=FollowService.followed_tipster_ids(current_user.id, db))

@router.get("/{tipster_id}/status", response_model=FollowStatus)
def get_follow_status(
    tipster_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    TipsterService.get_tipster(tipster_id, db)
    return _status(current_user, tipster_id, db)

@router.post("/{tipster_id}", response_model=FollowStatus)
def follow_tipster(
    tipster_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    FollowService.follow_tipster(current_user, tipster_id, db)
    return _status(current_user, tipster_id, db)

@router.delete("/{tipster_id}", response_model=FollowStatus)
def unfollow_tipster(
    tipster_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    FollowService.unfollow_tipster(current_user, tipster_id, db)
    return _status(current_user, tipster_id, db)
