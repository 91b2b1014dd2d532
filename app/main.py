import logging

from fastapi import Depends, FastAPI

from app.config import BACKTEST_CONFIG, NARRATIVE_ENABLED
from app.models import SnapshotIn
from app.storage import ensure_logs_dir, log_backtest, open_store
from whaledesk.backtest import BacktestAggregator, compute_win_rate
from whaledesk.clients import BinanceFuturesClient, GeminiNarrativeClient
from whaledesk.errors import (
    CollaboratorUnavailableError,
    InsufficientHistoryError,
    MalformedSeriesError,
    PlanNotSimulatableError,
    SimulationInProgressError,
)
from whaledesk.history import HistoryStore
from whaledesk.reporting import summarize_history
from whaledesk.utils.time import utc_now_ms

logger = logging.getLogger(__name__)

app = FastAPI()

_store: HistoryStore | None = None
_aggregator: BacktestAggregator | None = None


@app.on_event("startup")
def _startup() -> None:
    ensure_logs_dir()


def get_store() -> HistoryStore:
    global _store
    if _store is None:
        _store = open_store()
    return _store


def get_aggregator() -> BacktestAggregator:
    global _aggregator
    if _aggregator is None:
        narrative = None
        if NARRATIVE_ENABLED:
            narrative = GeminiNarrativeClient(
                api_key=BACKTEST_CONFIG.gemini_api_key,
                model=BACKTEST_CONFIG.gemini_model,
                base_url=BACKTEST_CONFIG.gemini_base_url,
            )
        _aggregator = BacktestAggregator(
            BinanceFuturesClient(
                base_url=BACKTEST_CONFIG.binance_base_url,
                timeout_s=BACKTEST_CONFIG.http_timeout_s,
            ),
            narrative,
            config=BACKTEST_CONFIG,
        )
    return _aggregator


def _response(accepted: bool, reason: str, **extra: object) -> dict[str, object]:
    payload: dict[str, object] = {"ok": True, "accepted": accepted, "reason": reason}
    payload.update(extra)
    return payload


@app.get("/history")
def history(store: HistoryStore = Depends(get_store)) -> dict[str, object]:
    store.prune(utc_now_ms())
    return {"history": [snapshot.to_dict() for snapshot in store.snapshots]}


@app.post("/history")
def record_analysis(payload: SnapshotIn, store: HistoryStore = Depends(get_store)) -> dict[str, object]:
    snapshot = payload.to_snapshot(utc_now_ms())
    store.add(snapshot)
    return _response(True, "recorded", id=snapshot.id, size=len(store))


@app.post("/backtest/{snapshot_id}")
async def run_backtest(
    snapshot_id: str,
    store: HistoryStore = Depends(get_store),
    aggregator: BacktestAggregator = Depends(get_aggregator),
) -> dict[str, object]:
    try:
        updated = await aggregator.run_and_store(store, snapshot_id)
    except KeyError:
        return _response(False, "snapshot_not_found", id=snapshot_id)
    except InsufficientHistoryError as exc:
        return _response(False, "insufficient_history", detail=exc.reason, retryable=True)
    except CollaboratorUnavailableError as exc:
        logger.warning("backtest %s: collaborator unavailable: %s", snapshot_id, exc)
        return _response(False, "collaborator_unavailable", detail=str(exc), retryable=exc.retryable)
    except MalformedSeriesError as exc:
        logger.error("backtest %s: malformed candle series: %s", snapshot_id, exc)
        return _response(False, "malformed_series", detail=str(exc), retryable=False)
    except PlanNotSimulatableError as exc:
        return _response(False, "plan_not_simulatable", detail=str(exc), retryable=False)
    except SimulationInProgressError as exc:
        return _response(False, "simulation_in_progress", detail=str(exc), retryable=True)

    log_backtest(updated)
    return _response(
        True,
        "backtest_complete",
        snapshot=updated.to_dict(),
        win_rate=compute_win_rate(store.snapshots),
    )


@app.get("/stats")
def stats(store: HistoryStore = Depends(get_store)) -> dict[str, object]:
    summary = summarize_history(store.snapshots)
    return {"win_rate": summary.win_rate, "summary": summary.to_dict()}
