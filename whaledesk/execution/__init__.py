"""Trade-plan replay package."""

from .scoring import SCORING_MODES, percent_score, score, unit_score
from .simulator import ENTRY_LABEL, STOP_LOSS_LABEL, derive_status, simulate, take_profit_label
from .state_machine import SimulationState, SimulationStateMachine

__all__ = [
    "ENTRY_LABEL",
    "STOP_LOSS_LABEL",
    "SCORING_MODES",
    "SimulationState",
    "SimulationStateMachine",
    "derive_status",
    "percent_score",
    "score",
    "simulate",
    "take_profit_label",
    "unit_score",
]
