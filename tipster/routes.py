# src/tipster/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from tipster.services import TipsterService
from tipster.profiles import TipsterProfileService
from tipster.schemas import TipsterCreate, TipsterUpdate, TipsterResponse, TipsterProfileResponse
from auth.routes import get_current_user, get_optional_user
from auth.models import User
from database import get_db

router = APIRouter(prefix="/tipsters", tags=["tipsters"])

@router.post("/", response_model=TipsterResponse)
def create_tipster(
    data: TipsterCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create the caller's tipster profile."""
    return TipsterService.create_tipster(data, current_user, db)

@router.get("/", response_model=List[TipsterProfileResponse])
def list_tipsters(
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    """Every tipster, newest first."""
    tipsters = TipsterService.list_tipsters(db)
    return TipsterProfileService.build_profiles(tipsters, current_user.id if current_user else None, db)

@router.get("/me", response_model=TipsterProfileResponse)
def get_my_tipster(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    tipster = TipsterService.require_own_tipster(current_user, db)
    return TipsterProfileService.build_profile(tipster, current_user.id, db)

@router.get("/{tipster_id}", response_model=TipsterProfileResponse)
def get_tipster(
    tipster_id: int,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    """Retrieve a tipster profile."""
    tipster = TipsterService.get_tipster(tipster_id, db)
    return TipsterProfileService.build_profile(tipster, current_user.id if current_user else None, db)

@router.patch("/{tipster_id}", response_model=TipsterResponse)
def update_tipster(
    tipster_id: int,
    data: TipsterUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return TipsterService.update_tipster(tipster_id, current_user, data, db)

@router.delete("/{tipster_id}", status_code=204)
def delete_tipster(
    tipster_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    TipsterService.delete_tipster(tipster_id, current_user, db)
