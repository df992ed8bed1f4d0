from datetime import datetime, timedelta

import pytest

from conftest import make_user, make_tipster, make_tip
from content.models import TipResult
from stats.schemas import StatsPeriod
from stats.services import StatsService


def settle_all(db, tipster, results, odds=2.0):
    for result in results:
        make_tip(db, tipster, odds=odds, result=result)


class TestTipsterStats:
    def test_figures_over_mixed_results(self, client, db):
        tipster = make_tipster(db, make_user(db, "alice"))
        make_tip(db, tipster, odds=2.0, result=TipResult.WON)
        make_tip(db, tipster, odds=1.5, result=TipResult.WON)
        make_tip(db, tipster, result=TipResult.LOST)
        make_tip(db, tipster, result=TipResult.VOID)
        make_tip(db, tipster, result=TipResult.LOST)
        make_tip(db, tipster)

        body = client.get(f"/stats/tipsters/{tipster.id}").json()

        assert body["total_tips"] == 6
        assert body["settled_tips"] == 5
        assert body["pending_tips"] == 1
        assert (body["won_tips"], body["lost_tips"], body["void_tips"]) == (2, 2, 1)
        # void tips are left out of the win rate
        assert body["win_rate"] == 50.0
        assert body["profit"] == -0.5
        assert body["roi"] == -10.0
        assert body["average_odds"] == 1.82
        assert body["yield_per_tip"] == -0.08
        # the void tip between the two losses does not break the run
        assert body["longest_win_streak"] == 2
        assert body["longest_lose_streak"] == 2

    def test_no_tips(self, client, db):
        tipster = make_tipster(db, make_user(db, "alice"))

        body = client.get(f"/stats/tipsters/{tipster.id}").json()

        assert body["total_tips"] == 0
        assert body["roi"] == 0
        assert body["win_rate"] == 0

    def test_period_excludes_older_tips(self, client, db):
        tipster = make_tipster(db, make_user(db, "alice"))
        make_tip(db, tipster, result=TipResult.WON, created_at=datetime.utcnow() - timedelta(days=40))
        make_tip(db, tipster, result=TipResult.LOST)

        recent = client.get(f"/stats/tipsters/{tipster.id}?period=30d").json()
        everything = client.get(f"/stats/tipsters/{tipster.id}?period=all").json()

        assert recent["total_tips"] == 1
        assert recent["won_tips"] == 0
        assert everything["total_tips"] == 2

    def test_invalid_period(self, client, db):
        tipster = make_tipster(db, make_user(db, "alice"))

        assert client.get(f"/stats/tipsters/{tipster.id}?period=2w").status_code == 422

    def test_unknown_tipster(self, client, db):
        assert client.get("/stats/tipsters/999").status_code == 404


class TestPeriodStart:
    def test_year_starts_on_january_first(self):
        assert StatsService.period_start(StatsPeriod.YEAR, now=datetime(2024, 6, 15, 12)) == datetime(2024, 1, 1)

    @pytest.mark.parametrize("period, days", [(StatsPeriod.WEEK, 7), (StatsPeriod.MONTH, 30), (StatsPeriod.QUARTER, 90)])
    def test_rolling_windows(self, period, days):
        now = datetime(2024, 6, 15, 12)

        assert StatsService.period_start(period, now=now) == now - timedelta(days=days)

    def test_all_has_no_start(self):
        assert StatsService.period_start(StatsPeriod.ALL) is None


class TestTopPerformers:
    def test_ranked_by_roi_with_minimum_settled_tips(self, client, db):
        winner = make_tipster(db, make_user(db, "alice"))
        loser = make_tipster(db, make_user(db, "bob"))
        newcomer = make_tipster(db, make_user(db, "carol"))
        settle_all(db, winner, [TipResult.WON] * 5)
        settle_all(db, loser, [TipResult.LOST] * 5)
        settle_all(db, newcomer, [TipResult.WON] * 4)

        body = client.get("/stats/top-performers").json()

        assert [p["tipster_id"] for p in body] == [winner.id, loser.id]
        assert body[0]["roi"] == 100.0
        assert body[0]["win_rate"] == 100.0
        assert body[0]["username"] == "alice"

    def test_limit(self, client, db):
        settle_all(db, make_tipster(db, make_user(db, "alice")), [TipResult.WON] * 5)
        settle_all(db, make_tipster(db, make_user(db, "bob")), [TipResult.LOST] * 5)

        assert len(client.get("/stats/top-performers?limit=1").json()) == 1
        assert client.get("/stats/top-performers?limit=11").status_code == 422

    def test_old_tips_fall_out_of_the_window(self, client, db):
        tipster = make_tipster(db, make_user(db, "alice"))
        for _ in range(5):
            make_tip(db, tipster, result=TipResult.WON, created_at=datetime.utcnow() - timedelta(days=45))

        assert client.get("/stats/top-performers?period=30d").json() == []
        assert len(client.get("/stats/top-performers?period=90d").json()) == 1
