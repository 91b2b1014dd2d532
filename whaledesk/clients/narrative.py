"""Post-mortem narrative client backed by the Gemini generateContent API."""
from __future__ import annotations

import json
import re
from typing import Protocol, Sequence

import httpx

from whaledesk.errors import CollaboratorUnavailableError
from whaledesk.models import AnalysisSnapshot, Candle

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
CANDLE_CONTEXT = 50


class NarrativeOracle(Protocol):
    async def post_mortem(self, snapshot: AnalysisSnapshot, candles: Sequence[Candle]) -> str:
        ...


def build_post_mortem_prompt(snapshot: AnalysisSnapshot, candles: Sequence[Candle]) -> str:
    context = [candle.to_dict() for candle in list(candles)[:CANDLE_CONTEXT]]
    return (
        f"POST-MORTEM for {snapshot.symbol}. "
        f"ORIGINAL ANALYSIS: {json.dumps(snapshot.analysis, ensure_ascii=False)}. "
        f"ACTUAL PRICE ACTION: {json.dumps(context)}. "
        "Explain in Markdown why the plan played out the way it did."
    )


class GeminiNarrativeClient:
    """Single-shot text generation with a fixed low temperature."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str = GEMINI_BASE_URL,
        timeout_s: float = 30.0,
        temperature: float = 0.2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._model = model.strip()
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._temperature = temperature
        self._transport = transport

    @property
    def model(self) -> str:
        return self._model

    async def post_mortem(self, snapshot: AnalysisSnapshot, candles: Sequence[Candle]) -> str:
        if not self._api_key:
            raise CollaboratorUnavailableError("GEMINI_API_KEY is not configured", retryable=False)

        payload = {
            "contents": [{"role": "user", "parts": [{"text": build_post_mortem_prompt(snapshot, candles)}]}],
            "generationConfig": {"temperature": self._temperature},
        }
        url = f"{self._base_url}/models/{self._model}:generateContent"
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout_s),
                transport=self._transport,
            ) as client:
                response = await client.post(url, params={"key": self._api_key}, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            excerpt = _extract_response_excerpt(exc.response.text, limit=300)
            raise CollaboratorUnavailableError(
                f"Gemini request failed (status={exc.response.status_code}, body={excerpt!r})"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise CollaboratorUnavailableError(f"Gemini request failed: {exc}") from exc

        text = _candidate_text(body)
        if not text:
            raise CollaboratorUnavailableError("Gemini returned empty content")
        return text


def _candidate_text(body: object) -> str:
    if not isinstance(body, dict):
        return ""
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ""
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    texts = [part.get("text") for part in parts if isinstance(part, dict)]
    return "".join(text for text in texts if isinstance(text, str)).strip()


def _extract_response_excerpt(raw_text: str, *, limit: int) -> str:
    compact = re.sub(r"\s+", " ", raw_text).strip()
    if not compact:
        return "<empty>"
    return compact[:limit]
