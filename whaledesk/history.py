"""Analysis history: pure list operations and a store handle.

Lists are ordered newest first. Every function returns a new list and keeps
the relative order of surviving entries.
"""
from __future__ import annotations

from typing import Callable, Iterable, Sequence

from whaledesk.models import AnalysisSnapshot

MAX_COUNT = 30
MAX_AGE_HOURS = 48
_HOUR_MS = 60 * 60 * 1000


def merge(existing: Sequence[AnalysisSnapshot], updated: AnalysisSnapshot) -> list[AnalysisSnapshot]:
    """Replace the entry with ``updated.id`` in place; unknown ids are a no-op."""
    return [updated if snapshot.id == updated.id else snapshot for snapshot in existing]


def prune(
    snapshots: Iterable[AnalysisSnapshot],
    now_ms: int,
    max_age_hours: float = MAX_AGE_HOURS,
) -> list[AnalysisSnapshot]:
    """Drop entries older than ``max_age_hours``."""
    horizon = max_age_hours * _HOUR_MS
    return [snapshot for snapshot in snapshots if now_ms - snapshot.created_at_ms < horizon]


def cap(snapshots: Sequence[AnalysisSnapshot], max_count: int = MAX_COUNT) -> list[AnalysisSnapshot]:
    """Keep the newest ``max_count`` entries."""
    return list(snapshots[: max(max_count, 0)])


def record(
    existing: Sequence[AnalysisSnapshot],
    snapshot: AnalysisSnapshot,
    max_count: int = MAX_COUNT,
) -> list[AnalysisSnapshot]:
    """Prepend a new analysis and cap the list."""
    remaining = [item for item in existing if item.id != snapshot.id]
    return cap([snapshot, *remaining], max_count)


class HistoryStore:
    """Mutable handle over a snapshot list with an optional save hook."""

    def __init__(
        self,
        snapshots: Iterable[AnalysisSnapshot] = (),
        *,
        max_count: int = MAX_COUNT,
        max_age_hours: float = MAX_AGE_HOURS,
        on_change: Callable[[list[AnalysisSnapshot]], None] | None = None,
    ) -> None:
        self._snapshots = list(snapshots)
        self.max_count = max_count
        self.max_age_hours = max_age_hours
        self._on_change = on_change

    @property
    def snapshots(self) -> list[AnalysisSnapshot]:
        return list(self._snapshots)

    def __len__(self) -> int:
        return len(self._snapshots)

    def get(self, snapshot_id: str) -> AnalysisSnapshot | None:
        for snapshot in self._snapshots:
            if snapshot.id == snapshot_id:
                return snapshot
        return None

    def _commit(self, snapshots: list[AnalysisSnapshot]) -> None:
        self._snapshots = snapshots
        if self._on_change is not None:
            self._on_change(self.snapshots)

    def add(self, snapshot: AnalysisSnapshot) -> None:
        self._commit(record(self._snapshots, snapshot, self.max_count))

    def update(self, snapshot: AnalysisSnapshot) -> bool:
        """Merge an updated snapshot; return False when its id is unknown."""
        if self.get(snapshot.id) is None:
            return False
        self._commit(merge(self._snapshots, snapshot))
        return True

    def prune(self, now_ms: int) -> int:
        """Apply age and count bounds; return how many entries were dropped."""
        kept = cap(prune(self._snapshots, now_ms, self.max_age_hours), self.max_count)
        dropped = len(self._snapshots) - len(kept)
        if dropped:
            self._commit(kept)
        return dropped
