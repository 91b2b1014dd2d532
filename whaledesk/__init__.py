"""Trade-plan backtesting core for the whale scenario dashboard."""

from whaledesk.backtest import (
    BacktestAggregator,
    compute_win_rate,
    ensure_eligible,
    is_eligible_for_simulation,
)
from whaledesk.config import BacktestConfig
from whaledesk.errors import (
    CollaboratorUnavailableError,
    InsufficientHistoryError,
    MalformedSeriesError,
    PlanNotSimulatableError,
    SimulationInProgressError,
    WhaleDeskError,
)
from whaledesk.execution import simulate
from whaledesk.history import HistoryStore, cap, merge, prune, record
from whaledesk.models import (
    AnalysisSnapshot,
    Candle,
    Direction,
    OutcomeStatus,
    SimulationEvent,
    SimulationOutcome,
    TakeProfitLevel,
    TradePlan,
)

__all__ = [
    "AnalysisSnapshot",
    "BacktestAggregator",
    "BacktestConfig",
    "Candle",
    "CollaboratorUnavailableError",
    "Direction",
    "HistoryStore",
    "InsufficientHistoryError",
    "MalformedSeriesError",
    "OutcomeStatus",
    "PlanNotSimulatableError",
    "SimulationEvent",
    "SimulationInProgressError",
    "SimulationOutcome",
    "TakeProfitLevel",
    "TradePlan",
    "WhaleDeskError",
    "cap",
    "compute_win_rate",
    "ensure_eligible",
    "is_eligible_for_simulation",
    "merge",
    "prune",
    "record",
    "simulate",
]
