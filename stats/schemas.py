# src/stats/schemas.py
import enum
from pydantic import BaseModel

class StatsPeriod(str, enum.Enum):
    ALL = "all"
    WEEK = "7d"
    MONTH = "30d"
    QUARTER = "90d"
    # since January 1st
    YEAR = "year"

class TipsterStats(BaseModel):
    tipster_id: int
    period: StatsPeriod
    total_tips: int = 0
    settled_tips: int = 0
    pending_tips: int = 0
    won_tips: int = 0
    lost_tips: int = 0
    void_tips: int = 0
    win_rate: float = 0  # percent of won over won + lost
    roi: float = 0  # percent, negative on a loss
    profit: float = 0  # units
    average_odds: float = 0
    yield_per_tip: float = 0  # profit over every tip, pending included
    longest_win_streak: int = 0
    longest_lose_streak: int = 0

class TopPerformer(BaseModel):
    tipster_id: int
    display_name: str
    username: str
    roi: float
    win_rate: float
    total_tips: int
    settled_tips: int
