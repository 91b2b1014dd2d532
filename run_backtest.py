"""Entry script to backtest every eligible snapshot in a saved analysis history."""
from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import replace
from pathlib import Path

from app.config import BACKTEST_CONFIG, HISTORY_PATH
from app.storage import load_history, save_history
from whaledesk.backtest import BacktestAggregator, is_eligible_for_simulation
from whaledesk.clients import BinanceFuturesClient, GeminiNarrativeClient
from whaledesk.config import BacktestConfig
from whaledesk.errors import WhaleDeskError
from whaledesk.execution.scoring import SCORING_MODES
from whaledesk.history import HistoryStore
from whaledesk.reporting import format_summary, summarize_history
from whaledesk.utils.time import utc_now_ms


def _build_aggregator(config: BacktestConfig, with_narrative: bool) -> BacktestAggregator:
    narrative = None
    if with_narrative:
        narrative = GeminiNarrativeClient(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            base_url=config.gemini_base_url,
        )
    market_data = BinanceFuturesClient(base_url=config.binance_base_url, timeout_s=config.http_timeout_s)
    return BacktestAggregator(market_data, narrative, config=config)


async def _run(store: HistoryStore, aggregator: BacktestAggregator, rerun: bool) -> int:
    now_ms = utc_now_ms()
    targets = [
        snapshot
        for snapshot in store.snapshots
        if (rerun or not snapshot.is_simulated)
        and is_eligible_for_simulation(snapshot, now_ms, aggregator.config.min_age_minutes)
    ]
    results = await asyncio.gather(
        *(aggregator.run_backtest(snapshot) for snapshot in targets),
        return_exceptions=True,
    )
    completed = 0
    for snapshot, result in zip(targets, results):
        if isinstance(result, WhaleDeskError):
            print(f"{snapshot.id}: skipped ({result})")
            continue
        if isinstance(result, BaseException):
            raise result
        store.update(result)
        outcome = result.simulation_outcome
        print(
            f"{snapshot.id}: {outcome.status.value} entry={outcome.entry_filled} "
            f"tp={outcome.take_profits_reached} bars={outcome.duration_in_bars}"
        )
        completed += 1
    return completed


def main() -> None:
    parser = argparse.ArgumentParser(description="Backtest stored whale scenario analyses.")
    parser.add_argument(
        "--history",
        type=Path,
        default=HISTORY_PATH,
        help="Path to the JSON analysis history file.",
    )
    parser.add_argument(
        "--scoring",
        choices=SCORING_MODES,
        default=BACKTEST_CONFIG.scoring,
        help="Profit metric: fixed units or percentage P&L.",
    )
    parser.add_argument(
        "--rerun",
        action="store_true",
        help="Recompute outcomes for snapshots that already have one.",
    )
    parser.add_argument(
        "--no-narrative",
        action="store_true",
        help="Skip the post-mortem request.",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = replace(BACKTEST_CONFIG, scoring=args.scoring)
    store = HistoryStore(
        load_history(args.history),
        max_count=config.history_max_count,
        max_age_hours=config.history_max_age_hours,
    )
    aggregator = _build_aggregator(config, with_narrative=not args.no_narrative)
    completed = asyncio.run(_run(store, aggregator, args.rerun))
    save_history(store.snapshots, args.history)

    print(f"\ncompleted={completed}")
    print(format_summary(summarize_history(store.snapshots)))


if __name__ == "__main__":
    main()
