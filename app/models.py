from typing import Any, Optional

from pydantic import BaseModel, Field

from whaledesk.models import AnalysisSnapshot


class SnapshotIn(BaseModel):
    symbol: str
    analysis: dict[str, Any]
    id: Optional[str] = None
    timestamp: Optional[int] = Field(default=None, description="Creation time in epoch milliseconds")

    def to_snapshot(self, now_ms: int) -> AnalysisSnapshot:
        created_at_ms = self.timestamp if self.timestamp is not None else now_ms
        symbol = self.symbol.strip().upper()
        return AnalysisSnapshot(
            id=self.id or f"{symbol}-{created_at_ms}",
            symbol=symbol,
            created_at_ms=created_at_ms,
            analysis=self.analysis,
        )
