"""Replay state machine for trade-plan simulation."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SimulationState(str, Enum):
    AWAITING_ENTRY = "AWAITING_ENTRY"
    IN_TRADE = "IN_TRADE"
    STOPPED = "STOPPED"
    TARGETS_EXHAUSTED = "TARGETS_EXHAUSTED"
    WINDOW_EXHAUSTED = "WINDOW_EXHAUSTED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {
        SimulationState.STOPPED,
        SimulationState.TARGETS_EXHAUSTED,
        SimulationState.WINDOW_EXHAUSTED,
    }
)


@dataclass(frozen=True)
class SimulationStateMachine:
    """Enforces allowed replay state transitions."""

    transitions: dict[SimulationState, set[SimulationState]] = None

    def __post_init__(self) -> None:
        if self.transitions is None:
            object.__setattr__(
                self,
                "transitions",
                {
                    SimulationState.AWAITING_ENTRY: {
                        SimulationState.IN_TRADE,
                        SimulationState.WINDOW_EXHAUSTED,
                    },
                    SimulationState.IN_TRADE: {
                        SimulationState.STOPPED,
                        SimulationState.TARGETS_EXHAUSTED,
                        SimulationState.WINDOW_EXHAUSTED,
                    },
                    SimulationState.STOPPED: set(),
                    SimulationState.TARGETS_EXHAUSTED: set(),
                    SimulationState.WINDOW_EXHAUSTED: set(),
                },
            )

    def can_transition(self, current: SimulationState, target: SimulationState) -> bool:
        return target in self.transitions.get(current, set())

    def transition(self, current: SimulationState, target: SimulationState) -> SimulationState:
        if not self.can_transition(current, target):
            raise ValueError(f"Invalid simulation state transition: {current} -> {target}")
        return target
