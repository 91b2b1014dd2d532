"""Deterministic replay of a trade plan against forward candles.

The scan walks bars in order through ``SimulationState``:

* ``AWAITING_ENTRY``: LONG fills when ``low <= entry``, SHORT when
  ``high >= entry``. Protective levels are not checked on the fill bar.
* ``IN_TRADE``: stop-loss is checked first and ends the scan. Otherwise
  take-profits are checked from the cursor in sequence order; one bar may
  reach several, and the cursor stops at the first untouched level.
  Reaching the last level ends the scan; a plan with no levels ends on
  the first bar after the fill.

Comparisons are exact: a bar touching a level to the tick counts.
"""
from __future__ import annotations

from typing import Sequence

from whaledesk.models import (
    Candle,
    Direction,
    OutcomeStatus,
    SimulationEvent,
    SimulationOutcome,
    TradePlan,
)

from .scoring import score
from .state_machine import SimulationState, SimulationStateMachine

ENTRY_LABEL = "ENTRY_HIT"
STOP_LOSS_LABEL = "STOP_LOSS_HIT"
MIN_BARS = 2


def take_profit_label(position: int) -> str:
    return f"TP{position}_HIT"


def _entry_touched(plan: TradePlan, candle: Candle) -> bool:
    if plan.is_long:
        return candle.low <= plan.entry_price
    return candle.high >= plan.entry_price


def _stop_touched(plan: TradePlan, candle: Candle) -> bool:
    if plan.is_long:
        return candle.low <= plan.stop_loss_price
    return candle.high >= plan.stop_loss_price


def _target_touched(plan: TradePlan, candle: Candle, price: float) -> bool:
    if plan.is_long:
        return candle.high >= price
    return candle.low <= price


def derive_status(entry_filled: bool, stop_loss_hit: bool, take_profits_reached: int) -> OutcomeStatus:
    if stop_loss_hit:
        return OutcomeStatus.FAILED
    if take_profits_reached > 0:
        return OutcomeStatus.SUCCESS
    if entry_filled:
        return OutcomeStatus.PENDING
    return OutcomeStatus.FAILED


def simulate(
    plan: TradePlan,
    candles: Sequence[Candle],
    *,
    scoring: str = "units",
) -> SimulationOutcome:
    """Replay ``plan`` over ``candles`` and classify the result."""
    series = tuple(candles)
    if len(series) < MIN_BARS:
        raise ValueError(f"simulate needs at least {MIN_BARS} candles, got {len(series)}")
    if plan.direction not in (Direction.LONG, Direction.SHORT):
        raise ValueError(f"cannot simulate a {plan.direction.value} plan")

    machine = SimulationStateMachine()
    levels = sorted(plan.take_profit_levels, key=lambda level: level.sequence_index)
    state = SimulationState.AWAITING_ENTRY
    cursor = 0
    duration = 0
    exit_price: float | None = None
    events: list[SimulationEvent] = []

    for index, candle in enumerate(series):
        duration = index
        timestamp_ms = candle.time * 1000

        if state == SimulationState.AWAITING_ENTRY:
            if _entry_touched(plan, candle):
                state = machine.transition(state, SimulationState.IN_TRADE)
                events.append(SimulationEvent(timestamp_ms, ENTRY_LABEL, plan.entry_price))
            continue

        if _stop_touched(plan, candle):
            state = machine.transition(state, SimulationState.STOPPED)
            events.append(SimulationEvent(timestamp_ms, STOP_LOSS_LABEL, plan.stop_loss_price))
            exit_price = plan.stop_loss_price
            break

        while cursor < len(levels) and _target_touched(plan, candle, levels[cursor].price):
            level = levels[cursor]
            cursor += 1
            events.append(SimulationEvent(timestamp_ms, take_profit_label(cursor), level.price))
            exit_price = level.price

        if cursor == len(levels):
            state = machine.transition(state, SimulationState.TARGETS_EXHAUSTED)
            if cursor == 0:
                exit_price = candle.close
            break

    entry_filled = state != SimulationState.AWAITING_ENTRY
    if not state.is_terminal:
        state = machine.transition(state, SimulationState.WINDOW_EXHAUSTED)
        if entry_filled and cursor == 0:
            exit_price = series[-1].close

    stop_loss_hit = state == SimulationState.STOPPED
    return SimulationOutcome(
        status=derive_status(entry_filled, stop_loss_hit, cursor),
        entry_filled=entry_filled,
        stop_loss_hit=stop_loss_hit,
        take_profits_reached=cursor,
        duration_in_bars=duration,
        profit_metric=score(
            scoring,
            entry=plan.entry_price,
            exit_price=exit_price,
            is_long=plan.is_long,
            stop_loss_hit=stop_loss_hit,
            take_profits_reached=cursor,
        ),
        events=tuple(events),
        final_state=state.value,
    )
