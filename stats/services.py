# src/stats/services.py
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from content.models import Tip, TipResult
from tipster.models import Tipster
from tipster.services import TipsterService
from stats.schemas import StatsPeriod, TipsterStats, TopPerformer
from config import settings

PERIOD_DAYS = {
    StatsPeriod.WEEK: 7,
    StatsPeriod.MONTH: 30,
    StatsPeriod.QUARTER: 90,
}

class StatsService:
    """
    Performance figures computed from settled tips.

    A won tip returns ``stake * odds``, a void tip returns its stake and a
    lost tip returns nothing. Pending tips count towards totals but not
    towards profit, ROI or streaks.
    """

    @staticmethod
    def period_start(period: StatsPeriod, now: Optional[datetime] = None) -> Optional[datetime]:
        now = now or datetime.utcnow()
        if period == StatsPeriod.YEAR:
            return datetime(now.year, 1, 1)
        if period in PERIOD_DAYS:
            return now - timedelta(days=PERIOD_DAYS[period])
        return None

    @staticmethod
    def _tips(tipster_ids: List[int], period: StatsPeriod, db: Session) -> List[Tip]:
        query = db.query(Tip).filter(Tip.tipster_id.in_(tipster_ids))
        start = StatsService.period_start(period)
        if start is not None:
            query = query.filter(Tip.created_at >= start)
        return query.order_by(Tip.created_at.asc(), Tip.id.asc()).all()

    @staticmethod
    def win_rate(won: int, decided: int) -> float:
        if decided == 0:
            return 0
        return round(won / decided * 100, 2)

    @staticmethod
    def roi_and_profit(tips: List[Tip]) -> Tuple[float, float]:
        staked = 0.0
        returned = 0.0
        for tip in tips:
            if tip.result is None:
                continue
            stake = tip.stake or 1
            staked += stake
            if tip.result == TipResult.WON:
                returned += stake * tip.odds
            elif tip.result == TipResult.VOID:
                returned += stake
        profit = returned - staked
        roi = profit / staked * 100 if staked > 0 else 0
        return round(roi, 2), round(profit, 2)

    @staticmethod
    def streaks(tips: List[Tip]) -> Tuple[int, int]:
        """Longest winning and losing runs over decided tips in publication order; void tips are skipped."""
        longest_win = longest_lose = current_win = current_lose = 0
        for tip in tips:
            if tip.result == TipResult.WON:
                current_win += 1
                current_lose = 0
                longest_win = max(longest_win, current_win)
            elif tip.result == TipResult.LOST:
                current_lose += 1
                current_win = 0
                longest_lose = max(longest_lose, current_lose)
        return longest_win, longest_lose

    @staticmethod
    def summarize(tipster_id: int, period: StatsPeriod, tips: List[Tip]) -> TipsterStats:
        total = len(tips)
        won = sum(1 for t in tips if t.result == TipResult.WON)
        lost = sum(1 for t in tips if t.result == TipResult.LOST)
        void = sum(1 for t in tips if t.result == TipResult.VOID)
        settled = won + lost + void
        roi, profit = StatsService.roi_and_profit(tips)
        longest_win, longest_lose = StatsService.streaks(tips)
        return TipsterStats(
            tipster_id=tipster_id,
            period=period,
            total_tips=total,
            settled_tips=settled,
            pending_tips=total - settled,
            won_tips=won,
            lost_tips=lost,
            void_tips=void,
            win_rate=StatsService.win_rate(won, won + lost),
            roi=roi,
            profit=profit,
            average_odds=round(sum(t.odds for t in tips) / total, 2) if total else 0,
            yield_per_tip=round(profit / total, 2) if total else 0,
            longest_win_streak=longest_win,
            longest_lose_streak=longest_lose,
        )

    @staticmethod
    def tipster_stats(tipster_id: int, period: StatsPeriod, db: Session) -> TipsterStats:
        TipsterService.get_tipster(tipster_id, db)
        return StatsService.summarize(tipster_id, period, StatsService._tips([tipster_id], period, db))

    @staticmethod
    def top_performers(period: StatsPeriod, limit: int, db: Session) -> List[TopPerformer]:
        """Tipsters ranked by ROI; only those with enough settled tips in the period qualify."""
        tipsters = db.query(Tipster).all()
        if not tipsters:
            return []
        by_tipster = {t.id: [] for t in tipsters}
        for tip in StatsService._tips(list(by_tipster), period, db):
            by_tipster[tip.tipster_id].append(tip)

        ranked = []
        for tipster in tipsters:
            stats = StatsService.summarize(tipster.id, period, by_tipster[tipster.id])
            if stats.settled_tips < settings.TOP_PERFORMER_MIN_SETTLED_TIPS:
                continue
            ranked.append(TopPerformer(
                tipster_id=tipster.id,
                display_name=tipster.display_name,
                username=tipster.user.username,
                roi=stats.roi,
                win_rate=stats.win_rate,
                total_tips=stats.total_tips,
                settled_tips=stats.settled_tips,
            ))
        ranked.sort(key=lambda p: (-p.roi, p.tipster_id))
        return ranked[:limit]
