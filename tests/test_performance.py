from datetime import datetime, timedelta, timezone
from decimal import Decimal

from alphamarket.application.services.performance_service import (
    PERIODS,
    PerformanceService,
    build_metrics,
    pick_extremes,
)
from alphamarket.domain.entities import CallStatus, ClosedTrade, StrategyType, TradeAction
from alphamarket.infrastructure.db.models import Call, Position, Strategy
from alphamarket.infrastructure.db.uow import session_scope

NOW = datetime(2026, 6, 30, 10, 0, tzinfo=timezone.utc)


def test_build_metrics_for_no_trades():
    assert build_metrics({}) == {
        "closedCount": 0, "profitableCount": 0, "lossCount": 0,
        "hitRate": 0.0, "absoluteReturn": 0.0, "avgReturn": 0.0,
    }


def test_build_metrics_rounds_to_two_places():
    metrics = build_metrics({"closed_count": 3, "profitable_count": 2, "total_gain": Decimal("10.005")})
    assert metrics == {
        "closedCount": 3, "profitableCount": 2, "lossCount": 1,
        "hitRate": 66.67, "absoluteReturn": 10.01, "avgReturn": 3.34,
    }


def test_pick_extremes_ignores_the_wrong_side_of_zero():
    winners = [ClosedTrade("call", "a", "TCS", Decimal("4")), ClosedTrade("call", "b", "INFY", Decimal("12.5"))]
    extremes = pick_extremes(winners)
    assert extremes["maxProfit"]["id"] == "b"
    assert extremes["maxProfit"]["gainPercent"] == 12.5
    assert extremes["maxDrawdown"] is None

    losers = [ClosedTrade("position", "c", "NIFTY", Decimal("-8"), NOW), ClosedTrade("call", "d", "ITC", Decimal("0"))]
    extremes = pick_extremes(losers)
    assert extremes["maxProfit"] is None
    assert extremes["maxDrawdown"] == {
        "type": "position", "id": "c", "label": "NIFTY", "gainPercent": -8.0, "exitDate": NOW.isoformat(),
    }

    assert pick_extremes([]) == {"maxProfit": None, "maxDrawdown": None}


class FakePerformanceRepository:
    """Two trades last week, one a year and a half ago."""

    windows = []

    def __init__(self, session):
        pass

    def get_summary(self, strategy_id, since):
        self.windows.append(since)
        if since is None or since <= NOW - timedelta(days=548):
            return {"closed_count": 3, "profitable_count": 2, "total_gain": Decimal("21")}
        return {"closed_count": 2, "profitable_count": 1, "total_gain": Decimal("6")}

    def list_closed_trades(self, strategy_id):
        return [ClosedTrade("call", "x", "TCS", Decimal("15")), ClosedTrade("call", "y", "INFY", Decimal("-4"))]


def test_report_covers_every_trailing_window(marketplace):
    FakePerformanceRepository.windows = []
    service = PerformanceService(repo_class=FakePerformanceRepository)

    with session_scope() as session:
        report = service.strategy_performance(session, marketplace["strategy_id"], now=NOW)

    assert [p["label"] for p in report["periods"]] == [label for label, _ in PERIODS]
    assert FakePerformanceRepository.windows[0] == NOW - timedelta(days=7)
    assert FakePerformanceRepository.windows[-1] is None
    by_label = {p["label"]: p for p in report["periods"]}
    assert by_label["1Y"]["closedCount"] == 2
    assert by_label["3Y"]["closedCount"] == 3
    assert "lossCount" not in by_label["Max"]
    assert report["totals"]["lossCount"] == 1
    assert report["totals"]["absoluteReturn"] == 21.0
    assert report["totals"]["avgReturn"] == 7.0
    assert report["maxProfit"]["id"] == "x"
    assert report["maxDrawdown"]["id"] == "y"
    assert report["strategyType"] == "Equity"
    assert report["isHitRateStrategy"] is False


def test_report_over_the_database(marketplace):
    with session_scope() as session:
        strategy = session.get(Strategy, marketplace["strategy_id"])
        strategy.type = StrategyType.OPTION
        session.add_all([
            Call(strategy_id=strategy.id, stock_name="TCS", action=TradeAction.BUY, status=CallStatus.CLOSED,
                 gain_percent=Decimal("10"), exit_date=NOW - timedelta(days=2)),
            Call(strategy_id=strategy.id, stock_name="ITC", action=TradeAction.BUY, status=CallStatus.CLOSED,
                 gain_percent=Decimal("-5"), exit_date=NOW - timedelta(days=200)),
            # Open calls and closed rows without a gain don't count.
            Call(strategy_id=strategy.id, stock_name="OPEN", action=TradeAction.BUY, status=CallStatus.ACTIVE),
            Call(strategy_id=strategy.id, stock_name="NOGAIN", action=TradeAction.BUY, status=CallStatus.CLOSED),
            Position(strategy_id=strategy.id, symbol="NIFTY", status=CallStatus.CLOSED,
                     gain_percent=Decimal("20"), exit_date=NOW - timedelta(days=20)),
        ])

    with session_scope() as session:
        report = PerformanceService().strategy_performance(session, marketplace["strategy_id"], now=NOW)

    assert report["isHitRateStrategy"] is True
    assert report["totals"] == {
        "closedCount": 3, "profitableCount": 2, "lossCount": 1,
        "hitRate": 66.67, "absoluteReturn": 25.0, "avgReturn": 8.33,
    }
    by_label = {p["label"]: p for p in report["periods"]}
    assert by_label["1W"]["closedCount"] == 1
    assert by_label["1M"]["closedCount"] == 2
    assert by_label["6M"]["closedCount"] == 2
    assert by_label["1Y"]["closedCount"] == 3
    assert report["maxProfit"]["label"] == "NIFTY"
    assert report["maxProfit"]["type"] == "position"
    assert report["maxDrawdown"]["label"] == "ITC"
