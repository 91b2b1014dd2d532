"""Configuration for backtests and collaborators."""
from __future__ import annotations

from dataclasses import dataclass
import os

from whaledesk.execution.scoring import SCORING_MODES


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class BacktestConfig:
    min_age_minutes: int = 60
    interval: str = "1h"
    candle_limit: int = 100
    history_max_count: int = 30
    history_max_age_hours: int = 48
    scoring: str = "units"
    binance_base_url: str = "https://fapi.binance.com"
    http_timeout_s: float = 10.0
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-pro"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    def __post_init__(self) -> None:
        if self.scoring not in SCORING_MODES:
            raise ValueError(f"scoring must be one of {SCORING_MODES}, got {self.scoring!r}")

    @classmethod
    def from_env(cls) -> "BacktestConfig":
        scoring = os.getenv("PROFIT_SCORING", cls.scoring)
        if scoring not in SCORING_MODES:
            scoring = cls.scoring
        return cls(
            min_age_minutes=_get_int("MIN_AGE_MINUTES", cls.min_age_minutes),
            interval=os.getenv("BACKTEST_INTERVAL", cls.interval),
            candle_limit=_get_int("BACKTEST_LIMIT", cls.candle_limit),
            history_max_count=_get_int("HISTORY_MAX_COUNT", cls.history_max_count),
            history_max_age_hours=_get_int("HISTORY_MAX_AGE_HOURS", cls.history_max_age_hours),
            scoring=scoring,
            binance_base_url=os.getenv("BINANCE_FUTURES_BASE_URL", cls.binance_base_url),
            http_timeout_s=_get_float("HTTP_TIMEOUT_S", cls.http_timeout_s),
            gemini_api_key=os.getenv("GEMINI_API_KEY", os.getenv("API_KEY", "")),
            gemini_model=os.getenv("GEMINI_MODEL", cls.gemini_model),
            gemini_base_url=os.getenv("GEMINI_BASE_URL", cls.gemini_base_url),
        )
