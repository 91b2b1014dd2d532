"""Profit scoring for simulated trade plans."""
from __future__ import annotations

STOP_LOSS_UNITS = -2.0
TAKE_PROFIT_UNITS = 3.0

SCORING_MODES = ("units", "percent")


def unit_score(stop_loss_hit: bool, take_profits_reached: int) -> float:
    """Coarse placeholder score: fixed loss on stop-out, fixed gain per target."""
    if stop_loss_hit:
        return STOP_LOSS_UNITS
    return take_profits_reached * TAKE_PROFIT_UNITS


def percent_move(entry: float, exit_price: float, is_long: bool) -> float:
    if entry == 0:
        return 0.0
    move = (exit_price - entry) / entry * 100.0
    return move if is_long else -move


def percent_score(
    *,
    entry: float,
    exit_price: float | None,
    is_long: bool,
    stop_loss_hit: bool,
    take_profits_reached: int,
) -> float:
    """Direction-aware percentage P&L at the exit price.

    Stop-outs are always non-positive and target exits non-negative, even for
    plans whose levels sit on the wrong side of entry. A live trade is marked
    to ``exit_price`` (the last close) with its natural sign.
    """
    if exit_price is None:
        return 0.0
    move = percent_move(entry, exit_price, is_long)
    if stop_loss_hit:
        return -abs(move)
    if take_profits_reached > 0:
        return abs(move)
    return move


def score(
    mode: str,
    *,
    entry: float,
    exit_price: float | None,
    is_long: bool,
    stop_loss_hit: bool,
    take_profits_reached: int,
) -> float:
    if mode == "units":
        return unit_score(stop_loss_hit, take_profits_reached)
    if mode == "percent":
        return round(
            percent_score(
                entry=entry,
                exit_price=exit_price,
                is_long=is_long,
                stop_loss_hit=stop_loss_hit,
                take_profits_reached=take_profits_reached,
            ),
            4,
        )
    raise ValueError(f"scoring must be one of {SCORING_MODES}, got {mode!r}")
