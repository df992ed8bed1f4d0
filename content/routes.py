# src/content/routes.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from content.services import TipService
from content.schemas import TipCreate, TipUpdate, TipResultUpdate, TipResponse, FeedFilter
from auth.routes import get_current_user, get_optional_user
from auth.models import User
from database import get_db

router = APIRouter(prefix="/content", tags=["content"])

@router.post("/tips", response_model=TipResponse)
def create_tip(
    data: TipCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Publish a new tip."""
    return TipService.create_tip(data, current_user, db)

@router.get("/tips", response_model=List[TipResponse])
def get_tips(
    tipster_id: Optional[int] = None,
    feed_filter: FeedFilter = Query(FeedFilter.ALL, alias="filter"),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    """Tip feed, optionally restricted to one tipster or to followed/subscribed tipsters."""
    return TipService.get_feed(current_user, tipster_id, db, limit, feed_filter)

@router.get("/tips/{tip_id}", response_model=TipResponse)
def get_tip(
    tip_id: int,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    return TipService.get_tip(tip_id, current_user, db)

@router.patch("/tips/{tip_id}", response_model=TipResponse)
def update_tip(
    tip_id: int,
    data: TipUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return TipService.update_tip(tip_id, current_user, data, db)

@router.delete("/tips/{tip_id}", status_code=204)
def delete_tip(
    tip_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    TipService.delete_tip(tip_id, current_user, db)

@router.post("/tips/{tip_id}/result", response_model=TipResponse)
def mark_tip_result(
    tip_id: int,
    data: TipResultUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Settle a tip as won, lost or void."""
    return TipService.mark_result(tip_id, current_user, data, db)
