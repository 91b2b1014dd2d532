import json
import logging
from pathlib import Path
from typing import Any, Iterable

from app.config import BACKTEST_CONFIG, BACKTEST_LOG_PATH, HISTORY_PATH, LOGS_DIR
from whaledesk.history import HistoryStore, cap, prune
from whaledesk.models import AnalysisSnapshot
from whaledesk.utils.time import utc_now, utc_now_ms

logger = logging.getLogger(__name__)


def ensure_logs_dir() -> None:
    LOGS_DIR.mkdir(parents=True, exist_ok=True)


def _parse_snapshots(entries: Iterable[Any]) -> list[AnalysisSnapshot]:
    snapshots: list[AnalysisSnapshot] = []
    for entry in entries:
        try:
            snapshots.append(AnalysisSnapshot.from_dict(entry))
        except (KeyError, TypeError, ValueError):
            logger.warning("skipping unreadable history entry: %r", entry)
            continue
    return snapshots


def load_history(path: Path = HISTORY_PATH, now_ms: int | None = None) -> list[AnalysisSnapshot]:
    """Read the persisted history, dropping entries past the age and count bounds."""
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        logger.warning("history file %s is unreadable, starting empty", path)
        return []
    if not isinstance(data, list):
        return []
    current = utc_now_ms() if now_ms is None else now_ms
    snapshots = prune(_parse_snapshots(data), current, BACKTEST_CONFIG.history_max_age_hours)
    return cap(snapshots, BACKTEST_CONFIG.history_max_count)


def save_history(snapshots: list[AnalysisSnapshot], path: Path = HISTORY_PATH) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(".tmp")
    temp_path.write_text(
        json.dumps([snapshot.to_dict() for snapshot in snapshots], ensure_ascii=False),
        encoding="utf-8",
    )
    temp_path.replace(path)


def open_store(path: Path = HISTORY_PATH) -> HistoryStore:
    return HistoryStore(
        load_history(path),
        max_count=BACKTEST_CONFIG.history_max_count,
        max_age_hours=BACKTEST_CONFIG.history_max_age_hours,
        on_change=lambda snapshots: save_history(snapshots, path),
    )


def append_jsonl(path: Path, data: dict[str, Any]) -> None:
    ensure_logs_dir()
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(data, ensure_ascii=False))
        handle.write("\n")


def log_backtest(snapshot: AnalysisSnapshot, path: Path = BACKTEST_LOG_PATH) -> None:
    outcome = snapshot.simulation_outcome
    if outcome is None:
        return
    record = outcome.to_dict()
    record.pop("postMortem", None)
    append_jsonl(
        path,
        {
            "logged_utc": utc_now().isoformat(),
            "id": snapshot.id,
            "symbol": snapshot.symbol,
            "created_at_ms": snapshot.created_at_ms,
            "outcome": record,
        },
    )
