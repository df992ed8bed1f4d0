# src/access/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from access.services import AccessService
from access.schemas import AccessDecision, TipsterAccessSummary
from auth.routes import get_optional_user
from auth.models import User
from database import get_db

router = APIRouter(prefix="/access", tags=["access"])

@router.get("/tips/{tip_id}", response_model=AccessDecision)
def check_tip_access(
    tip_id: int,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    """Whether the caller (or an anonymous visitor) can view a tip."""
    return AccessService.can_view_tip(current_user.id if current_user else None, tip_id, db)

@router.get("/tipsters/{tipster_id}", response_model=TipsterAccessSummary)
def get_tipster_access(
    tipster_id: int,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    return AccessService.tipster_access_summary(current_user.id if current_user else None, tipster_id, db)
