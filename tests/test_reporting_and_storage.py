import json

from app.storage import load_history, save_history
from whaledesk.models import AnalysisSnapshot, OutcomeStatus, SimulationOutcome
from whaledesk.reporting import format_summary, summarize_history

HOUR_MS = 60 * 60 * 1000
NOW = 1_700_000_000_000


def _snapshot(snapshot_id: str, status: OutcomeStatus | None, age_hours: float = 2.0) -> AnalysisSnapshot:
    snapshot = AnalysisSnapshot(
        id=snapshot_id,
        symbol="BNBUSDT",
        created_at_ms=int(NOW - age_hours * HOUR_MS),
        analysis={"signal": {"primaryPlan": {"direction": "LONG"}}},
    )
    if status is None:
        return snapshot
    return snapshot.with_outcome(
        SimulationOutcome(
            status=status,
            entry_filled=status != OutcomeStatus.FAILED,
            stop_loss_hit=False,
            take_profits_reached=2 if status == OutcomeStatus.SUCCESS else 0,
            duration_in_bars=4,
            profit_metric=6.0 if status == OutcomeStatus.SUCCESS else 0.0,
        )
    )


def test_summarize_history_counts_outcomes():
    history = [
        _snapshot("a", OutcomeStatus.SUCCESS),
        _snapshot("b", OutcomeStatus.FAILED),
        _snapshot("c", OutcomeStatus.PENDING),
        _snapshot("d", None),
    ]
    summary = summarize_history(history)
    assert summary.total == 4
    assert summary.simulated == 3
    assert summary.win_rate == 50
    assert summary.status_counts == {"SUCCESS": 1, "FAILED": 1, "PENDING": 1}
    assert summary.avg_duration_bars == 4
    assert summary.total_profit_metric == 6.0
    text = format_summary(summary)
    assert "win_rate=50%" in text
    assert "pending=1" in text


def test_history_file_round_trip_prunes_stale_entries(tmp_path):
    path = tmp_path / "history.json"
    save_history([_snapshot("a", OutcomeStatus.SUCCESS), _snapshot("old", None, age_hours=60)], path)
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw[0]["backtest"]["status"] == "SUCCESS"

    loaded = load_history(path, now_ms=NOW)
    assert [item.id for item in loaded] == ["a"]
    assert loaded[0].simulation_outcome.take_profits_reached == 2


def test_unreadable_history_file_loads_empty(tmp_path):
    path = tmp_path / "history.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_history(path, now_ms=NOW) == []
    assert load_history(tmp_path / "missing.json", now_ms=NOW) == []
