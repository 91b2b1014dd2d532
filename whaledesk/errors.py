"""Error types raised by the backtest core and its collaborators."""
from __future__ import annotations


class WhaleDeskError(Exception):
    """Base error for the backtest core."""


class InsufficientHistoryError(WhaleDeskError):
    """Not enough elapsed time or forward candles to replay a snapshot.

    Retryable: the same request is expected to succeed later.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class MalformedSeriesError(WhaleDeskError):
    """Candle data violates ordering or type invariants."""


class CollaboratorUnavailableError(WhaleDeskError):
    """Transport failure talking to the market-data or narrative service."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class PlanNotSimulatableError(WhaleDeskError):
    """The stored analysis has no LONG/SHORT plan with usable entry and stop-loss."""


class SimulationInProgressError(WhaleDeskError):
    """A backtest for the same snapshot id is already running."""
