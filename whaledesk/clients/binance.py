"""Binance USDT-M futures kline client."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import httpx

from whaledesk.errors import CollaboratorUnavailableError, MalformedSeriesError
from whaledesk.models import Candle
from whaledesk.series import candles_from_klines

logger = logging.getLogger(__name__)

BINANCE_FUTURES_BASE_URL = "https://fapi.binance.com"
KLINES_PATH = "/fapi/v1/klines"
MAX_LIMIT = 1500


class MarketDataClient(Protocol):
    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        start_time_ms: int | None = None,
        end_time_ms: int | None = None,
        limit: int | None = None,
    ) -> tuple[Candle, ...]:
        ...


class BinanceFuturesClient:
    """Fetch klines with a short timeout and a single retry on timeout.

    A short or empty response is returned as-is; only transport and HTTP
    failures raise CollaboratorUnavailableError.
    """

    def __init__(
        self,
        *,
        base_url: str = BINANCE_FUTURES_BASE_URL,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport

    def _params(
        self,
        symbol: str,
        interval: str,
        start_time_ms: int | None,
        end_time_ms: int | None,
        limit: int | None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"symbol": symbol.upper(), "interval": interval}
        if start_time_ms is not None:
            params["startTime"] = int(start_time_ms)
        if end_time_ms is not None:
            params["endTime"] = int(end_time_ms)
        if limit is not None:
            params["limit"] = max(1, min(int(limit), MAX_LIMIT))
        return params

    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        start_time_ms: int | None = None,
        end_time_ms: int | None = None,
        limit: int | None = None,
    ) -> tuple[Candle, ...]:
        url = f"{self._base_url}{KLINES_PATH}"
        params = self._params(symbol, interval, start_time_ms, end_time_ms, limit)
        for attempt in range(2):
            try:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self._timeout_s),
                    transport=self._transport,
                ) as client:
                    response = await client.get(url, params=params)
                response.raise_for_status()
                rows = response.json()
            except httpx.TimeoutException as exc:
                if attempt == 0:
                    logger.warning("kline request for %s timed out, retrying", symbol)
                    await asyncio.sleep(0.1)
                    continue
                raise CollaboratorUnavailableError(f"Binance timeout for {symbol} after retry") from exc
            except httpx.HTTPStatusError as exc:
                raise CollaboratorUnavailableError(
                    f"Binance kline request failed (status={exc.response.status_code}, symbol={symbol})",
                    retryable=exc.response.status_code == 429 or exc.response.status_code >= 500,
                ) from exc
            except (httpx.HTTPError, ValueError) as exc:
                raise CollaboratorUnavailableError(f"Binance kline request failed: {exc}") from exc

            if not isinstance(rows, list):
                raise MalformedSeriesError(f"expected a kline array, got {type(rows).__name__}")
            return candles_from_klines(rows)

        raise CollaboratorUnavailableError("Binance kline request failed unexpectedly")
