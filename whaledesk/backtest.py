"""Backtest orchestration and aggregate statistics over analysis history."""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Callable, Iterable

from whaledesk.clients.binance import MarketDataClient
from whaledesk.clients.narrative import NarrativeOracle
from whaledesk.config import BacktestConfig
from whaledesk.errors import (
    CollaboratorUnavailableError,
    InsufficientHistoryError,
    SimulationInProgressError,
)
from whaledesk.execution.simulator import MIN_BARS, simulate
from whaledesk.history import HistoryStore
from whaledesk.models import AnalysisSnapshot, OutcomeStatus
from whaledesk.plan import extract_plan
from whaledesk.series import build_series
from whaledesk.utils.time import utc_now_ms

logger = logging.getLogger(__name__)

_MINUTE_MS = 60 * 1000


def snapshot_age_minutes(snapshot: AnalysisSnapshot, now_ms: int) -> float:
    return (now_ms - snapshot.created_at_ms) / _MINUTE_MS


def is_eligible_for_simulation(
    snapshot: AnalysisSnapshot,
    now_ms: int | None = None,
    min_age_minutes: float = 60,
) -> bool:
    current = utc_now_ms() if now_ms is None else now_ms
    return snapshot_age_minutes(snapshot, current) >= min_age_minutes


def ensure_eligible(snapshot: AnalysisSnapshot, now_ms: int, min_age_minutes: float = 60) -> None:
    if not is_eligible_for_simulation(snapshot, now_ms, min_age_minutes):
        age = snapshot_age_minutes(snapshot, now_ms)
        raise InsufficientHistoryError(
            f"{snapshot.symbol} analysis is {age:.0f} minutes old; at least "
            f"{min_age_minutes:g} minutes of forward candles are needed to evaluate it"
        )


def compute_win_rate(snapshots: Iterable[AnalysisSnapshot]) -> int:
    """Percentage of decided backtests that succeeded, rounded half up.

    Unsimulated and PENDING snapshots are excluded from the denominator.
    """
    decided = [
        snapshot.simulation_outcome
        for snapshot in snapshots
        if snapshot.simulation_outcome is not None
        and snapshot.simulation_outcome.status != OutcomeStatus.PENDING
    ]
    if not decided:
        return 0
    wins = sum(1 for outcome in decided if outcome.status == OutcomeStatus.SUCCESS)
    return int(math.floor(wins / len(decided) * 100 + 0.5))


class BacktestAggregator:
    """Replays stored snapshots against forward candles from a market-data client.

    Runs for different snapshot ids may overlap; a second run for an id that
    is already in flight raises SimulationInProgressError.
    """

    def __init__(
        self,
        market_data: MarketDataClient,
        narrative: NarrativeOracle | None = None,
        *,
        config: BacktestConfig | None = None,
        clock: Callable[[], int] = utc_now_ms,
        fetch_timeout_s: float | None = None,
    ) -> None:
        self.market_data = market_data
        self.narrative = narrative
        self.config = config or BacktestConfig()
        self._clock = clock
        self._fetch_timeout_s = fetch_timeout_s
        self._in_flight: set[str] = set()

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    async def _fetch_forward_candles(self, snapshot: AnalysisSnapshot, now_ms: int):
        request = self.market_data.fetch_candles(
            snapshot.symbol,
            self.config.interval,
            snapshot.created_at_ms,
            now_ms,
            self.config.candle_limit,
        )
        if self._fetch_timeout_s is None:
            return await request
        try:
            return await asyncio.wait_for(request, timeout=self._fetch_timeout_s)
        except asyncio.TimeoutError as exc:
            raise CollaboratorUnavailableError(
                f"candle fetch for {snapshot.symbol} timed out after {self._fetch_timeout_s}s"
            ) from exc

    async def _post_mortem(self, snapshot: AnalysisSnapshot, candles) -> str | None:
        if self.narrative is None:
            return None
        try:
            return await self.narrative.post_mortem(snapshot, candles)
        except CollaboratorUnavailableError as exc:
            logger.warning("post-mortem for %s unavailable: %s", snapshot.id, exc)
            return None
        except Exception:
            logger.exception("post-mortem for %s failed", snapshot.id)
            return None

    async def run_backtest(self, snapshot: AnalysisSnapshot) -> AnalysisSnapshot:
        """Return ``snapshot`` with a freshly computed outcome attached."""
        if snapshot.id in self._in_flight:
            raise SimulationInProgressError(f"backtest for {snapshot.id} is already running")
        self._in_flight.add(snapshot.id)
        try:
            now_ms = self._clock()
            ensure_eligible(snapshot, now_ms, self.config.min_age_minutes)

            candles = build_series(await self._fetch_forward_candles(snapshot, now_ms))
            if len(candles) < MIN_BARS:
                raise InsufficientHistoryError(
                    f"only {len(candles)} forward {self.config.interval} candle(s) available "
                    f"for {snapshot.symbol}; try again later"
                )

            plan = extract_plan(snapshot.analysis)
            outcome = simulate(plan, candles, scoring=self.config.scoring)
            logger.info(
                "backtest %s %s: status=%s entry=%s sl=%s tp=%d bars=%d",
                snapshot.id,
                plan.direction.value,
                outcome.status.value,
                outcome.entry_filled,
                outcome.stop_loss_hit,
                outcome.take_profits_reached,
                outcome.duration_in_bars,
            )

            post_mortem = await self._post_mortem(snapshot, candles)
            if post_mortem is not None:
                outcome = outcome.with_post_mortem(post_mortem)
            return snapshot.with_outcome(outcome)
        finally:
            self._in_flight.discard(snapshot.id)

    async def run_and_store(self, store: HistoryStore, snapshot_id: str) -> AnalysisSnapshot:
        """Backtest a stored snapshot and merge the result back into ``store``."""
        snapshot = store.get(snapshot_id)
        if snapshot is None:
            raise KeyError(snapshot_id)
        updated = await self.run_backtest(snapshot)
        store.update(updated)
        return updated
