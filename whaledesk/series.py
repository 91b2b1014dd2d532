"""Candle series construction and validation."""
from __future__ import annotations

import math
from typing import Any, Iterable, Sequence

from whaledesk.errors import MalformedSeriesError
from whaledesk.models import Candle

_PRICE_FIELDS = ("open", "high", "low", "close", "volume")


def _finite(value: Any, name: str, index: int) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise MalformedSeriesError(f"bar {index}: {name}={value!r} is not numeric") from None
    if not math.isfinite(number):
        raise MalformedSeriesError(f"bar {index}: {name}={value!r} is not finite")
    return number


def build_series(candles: Iterable[Candle]) -> tuple[Candle, ...]:
    """Return candles as an immutable series, checking strict time order."""
    series = tuple(candles)
    previous: int | None = None
    for index, candle in enumerate(series):
        for name in _PRICE_FIELDS:
            _finite(getattr(candle, name), name, index)
        if previous is not None and candle.time <= previous:
            raise MalformedSeriesError(
                f"bar {index}: time {candle.time} is not after previous bar time {previous}"
            )
        previous = candle.time
    return series


def candle_from_kline(row: Sequence[Any], index: int = 0) -> Candle:
    """Convert one Binance kline array into a Candle.

    Kline layout: ``[open_time_ms, open, high, low, close, volume, close_time_ms, ...]``
    with prices as decimal strings.
    """
    if not isinstance(row, (list, tuple)) or len(row) < 6:
        raise MalformedSeriesError(f"bar {index}: expected kline array, got {row!r}")
    open_time_ms = _finite(row[0], "open_time", index)
    return Candle(
        time=int(open_time_ms // 1000),
        open=_finite(row[1], "open", index),
        high=_finite(row[2], "high", index),
        low=_finite(row[3], "low", index),
        close=_finite(row[4], "close", index),
        volume=_finite(row[5], "volume", index),
    )


def candles_from_klines(rows: Iterable[Sequence[Any]]) -> tuple[Candle, ...]:
    return build_series(candle_from_kline(row, index) for index, row in enumerate(rows))
