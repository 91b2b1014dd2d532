"""Shared data models for trade-plan backtests."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"


class OutcomeStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PENDING = "PENDING"


@dataclass(frozen=True)
class Candle:
    """One OHLCV bar; ``time`` is the bar open in epoch seconds."""

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class TakeProfitLevel:
    price: float
    sequence_index: int
    label: str = ""


@dataclass(frozen=True)
class TradePlan:
    direction: Direction
    entry_price: float
    stop_loss_price: float
    take_profit_levels: tuple[TakeProfitLevel, ...] = ()

    @property
    def is_long(self) -> bool:
        return self.direction == Direction.LONG


@dataclass(frozen=True)
class SimulationEvent:
    timestamp_ms: int
    label: str
    price: float

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp_ms, "label": self.label, "price": self.price}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SimulationEvent":
        return cls(
            timestamp_ms=int(data["timestamp"]),
            label=str(data["label"]),
            price=float(data["price"]),
        )


@dataclass(frozen=True)
class SimulationOutcome:
    status: OutcomeStatus
    entry_filled: bool
    stop_loss_hit: bool
    take_profits_reached: int
    duration_in_bars: int
    profit_metric: float
    events: tuple[SimulationEvent, ...] = ()
    final_state: str | None = None
    post_mortem: str | None = None

    def with_post_mortem(self, text: str | None) -> "SimulationOutcome":
        return replace(self, post_mortem=text)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": self.status.value,
            "entryHit": self.entry_filled,
            "slHit": self.stop_loss_hit,
            "tpReached": self.take_profits_reached,
            "durationHours": self.duration_in_bars,
            "pnlPercentage": self.profit_metric,
            "events": [event.to_dict() for event in self.events],
        }
        if self.final_state is not None:
            payload["finalState"] = self.final_state
        if self.post_mortem is not None:
            payload["postMortem"] = self.post_mortem
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SimulationOutcome":
        return cls(
            status=OutcomeStatus(data["status"]),
            entry_filled=bool(data.get("entryHit", False)),
            stop_loss_hit=bool(data.get("slHit", False)),
            take_profits_reached=int(data.get("tpReached", 0)),
            duration_in_bars=int(data.get("durationHours", 0)),
            profit_metric=float(data.get("pnlPercentage", 0.0)),
            events=tuple(SimulationEvent.from_dict(item) for item in data.get("events") or []),
            final_state=data.get("finalState"),
            post_mortem=data.get("postMortem"),
        )


@dataclass(frozen=True)
class AnalysisSnapshot:
    """One stored analysis: symbol, the oracle's report and an optional outcome.

    ``analysis`` is the oracle payload as received; the primary trade plan
    lives under ``analysis["signal"]["primaryPlan"]``.
    """

    id: str
    symbol: str
    created_at_ms: int
    analysis: Mapping[str, Any] = field(default_factory=dict)
    simulation_outcome: SimulationOutcome | None = None

    @property
    def is_simulated(self) -> bool:
        return self.simulation_outcome is not None

    def with_outcome(self, outcome: SimulationOutcome) -> "AnalysisSnapshot":
        return replace(self, simulation_outcome=outcome)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "symbol": self.symbol,
            "timestamp": self.created_at_ms,
            "analysis": dict(self.analysis),
        }
        if self.simulation_outcome is not None:
            payload["backtest"] = self.simulation_outcome.to_dict()
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalysisSnapshot":
        backtest = data.get("backtest")
        return cls(
            id=str(data["id"]),
            symbol=str(data["symbol"]),
            created_at_ms=int(data["timestamp"]),
            analysis=dict(data.get("analysis") or {}),
            simulation_outcome=SimulationOutcome.from_dict(backtest) if backtest else None,
        )
