import math

import pytest

from whaledesk.errors import MalformedSeriesError, PlanNotSimulatableError
from whaledesk.models import Candle, Direction
from whaledesk.plan import extract_plan, parse_price, plan_anomalies
from whaledesk.series import build_series, candles_from_klines


def _analysis(**plan):
    data = {
        "direction": "LONG",
        "whaleLimitEntry": "64,200.5",
        "stopLossPrice": "$63500",
        "takeProfitTargets": [{"price": "65000", "label": "TP1"}, {"price": "66000 - 66200", "label": "TP2"}],
    }
    data.update(plan)
    return {"signal": {"winProbability": 70, "primaryPlan": data}}


def test_parse_price_is_lenient():
    assert parse_price("64,200.5") == 64200.5
    assert parse_price("$0.5231") == 0.5231
    assert parse_price("66000 - 66200") == 66000
    assert parse_price(12) == 12.0
    assert parse_price("market") is None
    assert parse_price(None) is None
    assert parse_price(True) is None


def test_extract_plan_reads_primary_plan():
    plan = extract_plan(_analysis())
    assert plan.direction == Direction.LONG
    assert plan.entry_price == 64200.5
    assert plan.stop_loss_price == 63500
    assert [level.price for level in plan.take_profit_levels] == [65000, 66000]
    assert [level.sequence_index for level in plan.take_profit_levels] == [0, 1]
    assert plan_anomalies(plan) == []


def test_extract_plan_skips_unreadable_targets():
    plan = extract_plan(_analysis(takeProfitTargets=[{"price": "n/a"}, {"price": "65000"}]))
    assert [(level.price, level.sequence_index) for level in plan.take_profit_levels] == [(65000, 0)]


def test_extract_plan_tolerates_missing_targets():
    plan = extract_plan(_analysis(takeProfitTargets=None))
    assert plan.take_profit_levels == ()
    assert "plan has no take-profit levels" in plan_anomalies(plan)


def test_neutral_and_unreadable_plans_are_not_simulatable():
    with pytest.raises(PlanNotSimulatableError):
        extract_plan(_analysis(direction="NEUTRAL"))
    with pytest.raises(PlanNotSimulatableError):
        extract_plan(_analysis(whaleLimitEntry="wait for sweep"))
    with pytest.raises(PlanNotSimulatableError):
        extract_plan({"signal": {}})


def test_anomalies_flag_wrong_side_levels_without_raising():
    plan = extract_plan(
        _analysis(direction="SHORT", stopLossPrice="60000", takeProfitTargets=[{"price": "65000"}])
    )
    anomalies = plan_anomalies(plan)
    assert any("stop-loss" in item for item in anomalies)
    assert any("TP1" in item for item in anomalies)


def test_candles_from_klines_converts_binance_rows():
    rows = [
        [1700000000000, "100.0", "101.5", "99.0", "100.5", "1234.5", 1700003599999],
        [1700003600000, "100.5", "102.0", "100.1", "101.9", "987.0", 1700007199999],
    ]
    series = candles_from_klines(rows)
    assert series[0] == Candle(time=1700000000, open=100.0, high=101.5, low=99.0, close=100.5, volume=1234.5)
    assert series[1].time == 1700003600


def test_build_series_rejects_out_of_order_bars():
    candles = [
        Candle(time=20, open=1, high=1, low=1, close=1),
        Candle(time=10, open=1, high=1, low=1, close=1),
    ]
    with pytest.raises(MalformedSeriesError):
        build_series(candles)


def test_build_series_rejects_non_finite_prices():
    with pytest.raises(MalformedSeriesError):
        build_series([Candle(time=1, open=1, high=math.nan, low=1, close=1)])


def test_garbled_kline_row_is_malformed():
    with pytest.raises(MalformedSeriesError):
        candles_from_klines([[1700000000000, "abc", "1", "1", "1", "1"]])
    with pytest.raises(MalformedSeriesError):
        candles_from_klines([[1700000000000, "1", "1"]])
