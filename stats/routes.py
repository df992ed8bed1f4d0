# src/stats/routes.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List
from stats.services import StatsService
from stats.schemas import StatsPeriod, TipsterStats, TopPerformer
from database import get_db

router = APIRouter(prefix="/stats", tags=["stats"])

@router.get("/top-performers", response_model=List[TopPerformer])
def get_top_performers(
    period: StatsPeriod = StatsPeriod.MONTH,
    limit: int = Query(3, ge=1, le=10),
    db: Session = Depends(get_db)
):
    """Leaderboard by ROI."""
    return StatsService.top_performers(period, limit, db)

@router.get("/tipsters/{tipster_id}", response_model=TipsterStats)
def get_tipster_stats(
    tipster_id: int,
    period: StatsPeriod = StatsPeriod.ALL,
    db: Session = Depends(get_db)
):
    return StatsService.tipster_stats(tipster_id, period, db)
