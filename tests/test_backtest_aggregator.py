import asyncio

import pytest

from whaledesk.backtest import BacktestAggregator, compute_win_rate, is_eligible_for_simulation
from whaledesk.config import BacktestConfig
from whaledesk.errors import (
    CollaboratorUnavailableError,
    InsufficientHistoryError,
    MalformedSeriesError,
    PlanNotSimulatableError,
    SimulationInProgressError,
)
from whaledesk.history import HistoryStore
from whaledesk.models import AnalysisSnapshot, Candle, OutcomeStatus, SimulationOutcome

MINUTE_MS = 60 * 1000
NOW = 1_700_000_000_000


def _analysis(direction: str = "LONG") -> dict:
    return {
        "signal": {
            "primaryPlan": {
                "direction": direction,
                "whaleLimitEntry": "100",
                "stopLossPrice": "95",
                "takeProfitTargets": [{"price": "105"}, {"price": "110"}],
            }
        }
    }


def _snapshot(snapshot_id: str = "BTCUSDT-1", age_minutes: float = 120, direction: str = "LONG"):
    return AnalysisSnapshot(
        id=snapshot_id,
        symbol="BTCUSDT",
        created_at_ms=int(NOW - age_minutes * MINUTE_MS),
        analysis=_analysis(direction),
    )


def _candles() -> tuple[Candle, ...]:
    t0 = (NOW - 120 * MINUTE_MS) // 1000
    return (
        Candle(time=t0, open=100, high=101, low=99, close=100),
        Candle(time=t0 + 3600, open=100, high=106, low=98, close=104),
        Candle(time=t0 + 7200, open=104, high=111, low=96, close=110),
    )


class StubMarketData:
    def __init__(self, candles=(), error: Exception | None = None, delay: float = 0.0):
        self.candles = tuple(candles)
        self.error = error
        self.delay = delay
        self.calls: list[tuple] = []

    async def fetch_candles(self, symbol, interval, start_time_ms=None, end_time_ms=None, limit=None):
        self.calls.append((symbol, interval, start_time_ms, end_time_ms, limit))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.candles


class StubNarrative:
    def __init__(self, text: str = "", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls = 0

    async def post_mortem(self, snapshot, candles):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text


def _aggregator(market_data, narrative=None, **kwargs) -> BacktestAggregator:
    return BacktestAggregator(market_data, narrative, clock=lambda: NOW, **kwargs)


def test_eligibility_requires_an_hour():
    assert is_eligible_for_simulation(_snapshot(age_minutes=60), NOW) is True
    assert is_eligible_for_simulation(_snapshot(age_minutes=59), NOW) is False


def test_run_backtest_attaches_outcome_and_post_mortem():
    market = StubMarketData(_candles())
    narrative = StubNarrative("Sweep then expansion.")
    snapshot = _snapshot()
    updated = asyncio.run(_aggregator(market, narrative).run_backtest(snapshot))

    outcome = updated.simulation_outcome
    assert outcome.status == OutcomeStatus.SUCCESS
    assert outcome.take_profits_reached == 2
    assert outcome.duration_in_bars == 2
    assert outcome.post_mortem == "Sweep then expansion."
    assert snapshot.simulation_outcome is None
    assert market.calls == [("BTCUSDT", "1h", snapshot.created_at_ms, NOW, 100)]


def test_recent_snapshot_is_rejected_before_fetch():
    market = StubMarketData(_candles())
    with pytest.raises(InsufficientHistoryError) as excinfo:
        asyncio.run(_aggregator(market).run_backtest(_snapshot(age_minutes=30)))
    assert "minutes" in excinfo.value.reason
    assert market.calls == []


def test_short_forward_series_is_insufficient_history():
    market = StubMarketData(_candles()[:1])
    with pytest.raises(InsufficientHistoryError):
        asyncio.run(_aggregator(market).run_backtest(_snapshot()))


def test_narrative_failure_keeps_numeric_outcome():
    narrative = StubNarrative(error=CollaboratorUnavailableError("quota exceeded"))
    updated = asyncio.run(_aggregator(StubMarketData(_candles()), narrative).run_backtest(_snapshot()))
    assert narrative.calls == 1
    assert updated.simulation_outcome.status == OutcomeStatus.SUCCESS
    assert updated.simulation_outcome.post_mortem is None


def test_unexpected_narrative_error_keeps_numeric_outcome():
    narrative = StubNarrative(error=RuntimeError("boom"))
    aggregator = _aggregator(StubMarketData(_candles()), narrative)
    updated = asyncio.run(aggregator.run_backtest(_snapshot()))
    assert narrative.calls == 1
    assert updated.simulation_outcome.status == OutcomeStatus.SUCCESS
    assert updated.simulation_outcome.post_mortem is None
    assert aggregator.in_flight == frozenset()


def test_out_of_order_forward_candles_are_malformed():
    store = HistoryStore([_snapshot()])
    market = StubMarketData(_candles()[::-1])
    with pytest.raises(MalformedSeriesError):
        asyncio.run(_aggregator(market).run_and_store(store, "BTCUSDT-1"))
    assert store.get("BTCUSDT-1").simulation_outcome is None


def test_fetch_failure_leaves_store_untouched():
    store = HistoryStore([_snapshot()])
    market = StubMarketData(error=CollaboratorUnavailableError("connection reset"))
    with pytest.raises(CollaboratorUnavailableError):
        asyncio.run(_aggregator(market).run_and_store(store, "BTCUSDT-1"))
    assert store.get("BTCUSDT-1").simulation_outcome is None


def test_fetch_timeout_is_retryable_collaborator_error():
    market = StubMarketData(_candles(), delay=0.5)
    aggregator = _aggregator(market, fetch_timeout_s=0.01)
    with pytest.raises(CollaboratorUnavailableError) as excinfo:
        asyncio.run(aggregator.run_backtest(_snapshot()))
    assert excinfo.value.retryable is True
    assert aggregator.in_flight == frozenset()


def test_neutral_plan_is_not_simulated():
    with pytest.raises(PlanNotSimulatableError):
        asyncio.run(_aggregator(StubMarketData(_candles())).run_backtest(_snapshot(direction="NEUTRAL")))


def test_run_and_store_merges_and_rerun_overwrites():
    store = HistoryStore([_snapshot("b"), _snapshot("a")])
    aggregator = _aggregator(StubMarketData(_candles()))
    first = asyncio.run(aggregator.run_and_store(store, "a"))
    second = asyncio.run(aggregator.run_and_store(store, "a"))
    assert first.simulation_outcome == second.simulation_outcome
    assert [item.id for item in store.snapshots] == ["b", "a"]
    assert store.get("a").simulation_outcome.status == OutcomeStatus.SUCCESS
    with pytest.raises(KeyError):
        asyncio.run(aggregator.run_and_store(store, "missing"))


def test_same_id_cannot_run_concurrently_but_different_ids_can():
    aggregator = _aggregator(StubMarketData(_candles(), delay=0.05))

    async def scenario():
        return await asyncio.gather(
            aggregator.run_backtest(_snapshot("x")),
            aggregator.run_backtest(_snapshot("x")),
            aggregator.run_backtest(_snapshot("y")),
            return_exceptions=True,
        )

    first, duplicate, other = asyncio.run(scenario())
    assert isinstance(first, AnalysisSnapshot)
    assert isinstance(duplicate, SimulationInProgressError)
    assert isinstance(other, AnalysisSnapshot)
    assert aggregator.in_flight == frozenset()


def test_percent_scoring_from_config():
    aggregator = _aggregator(StubMarketData(_candles()), config=BacktestConfig(scoring="percent"))
    updated = asyncio.run(aggregator.run_backtest(_snapshot()))
    assert updated.simulation_outcome.profit_metric == 10.0


def _with_status(snapshot_id: str, status: OutcomeStatus) -> AnalysisSnapshot:
    return _snapshot(snapshot_id).with_outcome(
        SimulationOutcome(
            status=status,
            entry_filled=status != OutcomeStatus.FAILED,
            stop_loss_hit=False,
            take_profits_reached=1 if status == OutcomeStatus.SUCCESS else 0,
            duration_in_bars=1,
            profit_metric=0.0,
        )
    )


def test_win_rate_excludes_pending_and_unsimulated():
    assert compute_win_rate([]) == 0
    assert compute_win_rate([_with_status("a", OutcomeStatus.SUCCESS), _with_status("b", OutcomeStatus.PENDING)]) == 100
    assert compute_win_rate([_snapshot("c"), _with_status("d", OutcomeStatus.PENDING)]) == 0


def test_win_rate_rounds_half_up():
    history = [
        _with_status("a", OutcomeStatus.SUCCESS),
        _with_status("b", OutcomeStatus.FAILED),
        _with_status("c", OutcomeStatus.FAILED),
    ]
    assert compute_win_rate(history) == 33
    history = [_with_status(str(i), OutcomeStatus.SUCCESS) for i in range(1)] + [
        _with_status(f"f{i}", OutcomeStatus.FAILED) for i in range(7)
    ]
    assert compute_win_rate(history) == 13
