"""Collaborator clients for market data and narrative generation."""

from .binance import BinanceFuturesClient, MarketDataClient
from .narrative import GeminiNarrativeClient, NarrativeOracle, build_post_mortem_prompt

__all__ = [
    "BinanceFuturesClient",
    "GeminiNarrativeClient",
    "MarketDataClient",
    "NarrativeOracle",
    "build_post_mortem_prompt",
]
