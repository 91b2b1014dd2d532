"""Reporting helpers for simulated analysis history."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from statistics import mean
from typing import Iterable

from whaledesk.backtest import compute_win_rate
from whaledesk.models import AnalysisSnapshot, OutcomeStatus


@dataclass(frozen=True)
class HistorySummary:
    total: int
    simulated: int
    win_rate: int
    status_counts: dict[str, int] = field(default_factory=dict)
    entry_fill_rate: float = 0.0
    avg_duration_bars: float | None = None
    total_profit_metric: float = 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "simulated": self.simulated,
            "win_rate": self.win_rate,
            "status_counts": dict(self.status_counts),
            "entry_fill_rate": self.entry_fill_rate,
            "avg_duration_bars": self.avg_duration_bars,
            "total_profit_metric": self.total_profit_metric,
        }


def summarize_history(snapshots: Iterable[AnalysisSnapshot]) -> HistorySummary:
    items = list(snapshots)
    outcomes = [item.simulation_outcome for item in items if item.simulation_outcome is not None]
    counts = Counter(outcome.status.value for outcome in outcomes)
    filled = [outcome for outcome in outcomes if outcome.entry_filled]
    return HistorySummary(
        total=len(items),
        simulated=len(outcomes),
        win_rate=compute_win_rate(items),
        status_counts={status.value: counts.get(status.value, 0) for status in OutcomeStatus},
        entry_fill_rate=round(len(filled) / len(outcomes), 4) if outcomes else 0.0,
        avg_duration_bars=round(mean(outcome.duration_in_bars for outcome in filled), 2) if filled else None,
        total_profit_metric=round(sum(outcome.profit_metric for outcome in outcomes), 4),
    )


def format_summary(summary: HistorySummary) -> str:
    lines = [
        f"snapshots={summary.total}",
        f"simulated={summary.simulated}",
        f"win_rate={summary.win_rate}%",
    ]
    for status, count in summary.status_counts.items():
        lines.append(f"{status.lower()}={count}")
    lines.append(f"entry_fill_rate={summary.entry_fill_rate:.2%}")
    if summary.avg_duration_bars is not None:
        lines.append(f"avg_duration_bars={summary.avg_duration_bars:.2f}")
    lines.append(f"total_profit_metric={summary.total_profit_metric:g}")
    return "\n".join(lines)
