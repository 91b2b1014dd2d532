"""Trade plan extraction from oracle analysis payloads.

The oracle returns prices as free-form strings ("0.5231", "$64,200",
"64200 - 64350"). Parsing is lenient and validation is advisory: a plan that
is structurally present but economically odd is still simulated.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from whaledesk.errors import PlanNotSimulatableError
from whaledesk.models import Direction, TakeProfitLevel, TradePlan

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def normalize_direction(value: Any) -> Direction:
    normalized = {
        "long": Direction.LONG,
        "buy": Direction.LONG,
        "short": Direction.SHORT,
        "sell": Direction.SHORT,
        "neutral": Direction.NEUTRAL,
    }.get(str(value or "").strip().lower())
    if normalized is None:
        return Direction.NEUTRAL
    return normalized


def parse_price(value: Any) -> float | None:
    """Parse an oracle price field; return None when no number is present.

    For ranges such as ``"64200 - 64350"`` the first number is used.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None
    match = _NUMBER_RE.search(value.replace(",", ""))
    if match is None:
        return None
    return float(match.group(0))


def primary_plan_payload(analysis: Mapping[str, Any]) -> Mapping[str, Any]:
    signal = analysis.get("signal") if isinstance(analysis, Mapping) else None
    plan = signal.get("primaryPlan") if isinstance(signal, Mapping) else None
    if not isinstance(plan, Mapping):
        raise PlanNotSimulatableError("analysis has no signal.primaryPlan")
    return plan


def extract_plan(analysis: Mapping[str, Any]) -> TradePlan:
    """Build the primary TradePlan from an analysis payload.

    Raises PlanNotSimulatableError when the direction is not LONG/SHORT or
    the entry / stop-loss prices cannot be read.
    """
    payload = primary_plan_payload(analysis)
    direction = normalize_direction(payload.get("direction"))
    if direction == Direction.NEUTRAL:
        raise PlanNotSimulatableError("NEUTRAL plans are not simulated")

    entry = parse_price(payload.get("whaleLimitEntry"))
    if entry is None:
        raise PlanNotSimulatableError(f"unreadable entry price: {payload.get('whaleLimitEntry')!r}")
    stop_loss = parse_price(payload.get("stopLossPrice"))
    if stop_loss is None:
        raise PlanNotSimulatableError(f"unreadable stop-loss price: {payload.get('stopLossPrice')!r}")

    levels: list[TakeProfitLevel] = []
    for raw in payload.get("takeProfitTargets") or []:
        raw_price = raw.get("price") if isinstance(raw, Mapping) else raw
        price = parse_price(raw_price)
        if price is None:
            logger.warning("skipping take-profit with unreadable price %r", raw_price)
            continue
        label = str(raw.get("label") or "") if isinstance(raw, Mapping) else ""
        levels.append(TakeProfitLevel(price=price, sequence_index=len(levels), label=label))

    plan = TradePlan(
        direction=direction,
        entry_price=entry,
        stop_loss_price=stop_loss,
        take_profit_levels=tuple(levels),
    )
    for anomaly in plan_anomalies(plan):
        logger.warning("trade plan anomaly: %s", anomaly)
    return plan


def plan_anomalies(plan: TradePlan) -> list[str]:
    """List economically suspicious properties of a plan. Never raises."""
    anomalies: list[str] = []
    if plan.direction == Direction.NEUTRAL:
        return ["direction is NEUTRAL"]
    sign = 1 if plan.is_long else -1
    if sign * (plan.entry_price - plan.stop_loss_price) <= 0:
        anomalies.append(
            f"stop-loss {plan.stop_loss_price} is not on the protective side of entry {plan.entry_price}"
        )
    previous = plan.entry_price
    for level in plan.take_profit_levels:
        if sign * (level.price - plan.entry_price) <= 0:
            anomalies.append(f"TP{level.sequence_index + 1} {level.price} is not beyond entry")
        elif sign * (level.price - previous) < 0:
            anomalies.append(f"TP{level.sequence_index + 1} {level.price} is closer than the previous target")
        previous = level.price
    if not plan.take_profit_levels:
        anomalies.append("plan has no take-profit levels")
    return anomalies
