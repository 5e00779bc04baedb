"""
Recommendation Engine - Anthropic Model Client.

============================================================
PURPOSE
============================================================
ModelClient over the Anthropic Messages API (httpx).

The model is asked for a single JSON object:
    {"instrument", "direction", "confidence", "rationale",
     "units", "expires_in_minutes"}

FAILURE MODES:
- No API key            -> ModelUnavailableError
- HTTP/transport error  -> ModelCallFailed
- Unparseable output    -> ModelCallFailed

The drafter turns either into a heuristic draft.

============================================================
"""

import json
import logging
import time
from datetime import timedelta
from typing import Any, Dict, Optional

import httpx

from core.exceptions import ModelCallFailed, ModelUnavailableError
from recommendation_engine.config import ModelConfig
from recommendation_engine.adapters.base import ModelClient
from recommendation_engine.types import (
    Direction,
    DraftRecommendation,
    DraftSource,
    ModelUsage,
    RecommendationRequest,
    TradingContext,
)


logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are a professional forex trading analyst. "
    "Answer with one JSON object and nothing else."
)

MAX_CONTEXT_CHARS = 6000


def build_prompt(context: TradingContext, request: RecommendationRequest) -> str:
    """User prompt for one recommendation."""
    snapshot = json.dumps(
        {"market": context.market, "news": context.news, "historical": context.historical},
        default=str,
    )[:MAX_CONTEXT_CHARS]

    lines = [
        "Generate a forex trade recommendation.",
        f"Instruments (choose one): {', '.join(request.instruments)}",
        f"Risk level: {request.risk_level.value}",
        f"Time horizon: {request.time_horizon}",
    ]
    if request.context:
        lines.append(f"Guidance: {request.context}")
    lines.append(f"Context: {snapshot}")
    lines.append(
        'Respond with {"instrument": str, "direction": "BUY"|"SELL", '
        '"confidence": 0..1, "rationale": str, "units": int, "expires_in_minutes": int}'
    )
    return "\n".join(lines)


def extract_json_object(text: str) -> Dict[str, Any]:
    """First {...} span of a model reply, parsed."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("no JSON object in model output")
    return json.loads(text[start:end + 1])


class AnthropicModelClient(ModelClient):
    """Anthropic Messages API client."""

    def __init__(
        self,
        config: ModelConfig,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._config = config
        self._client = client or httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
        )

    @property
    def model_name(self) -> str:
        return self._config.model

    def close(self) -> None:
        self._client.close()

    def generate(
        self,
        context: TradingContext,
        request: RecommendationRequest,
    ) -> DraftRecommendation:
        if not self._config.api_key:
            raise ModelUnavailableError("ANTHROPIC_API_KEY is not set")

        body = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": build_prompt(context, request)}],
        }
        headers = {
            "x-api-key": self._config.api_key,
            "anthropic-version": self._config.api_version,
            "content-type": "application/json",
        }

        started = time.monotonic()
        try:
            response = self._client.post("/v1/messages", json=body, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ModelCallFailed(
                f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                endpoint="/v1/messages",
                status_code=e.response.status_code,
                cause=e,
            ) from e
        except httpx.TimeoutException as e:
            raise ModelCallFailed(f"Request timeout: {e}", endpoint="/v1/messages", cause=e) from e
        except httpx.RequestError as e:
            raise ModelCallFailed(f"Request error: {e}", endpoint="/v1/messages", cause=e) from e
        except ValueError as e:
            raise ModelCallFailed(f"Invalid JSON response: {e}", endpoint="/v1/messages", cause=e) from e
        elapsed_ms = int((time.monotonic() - started) * 1000)

        if not isinstance(data, dict):
            raise ModelCallFailed(
                f"Unexpected response body: {type(data).__name__}",
                endpoint="/v1/messages",
            )
        content = data.get("content") or []
        if not isinstance(content, list):
            raise ModelCallFailed("Response content is not a list", endpoint="/v1/messages")

        text = "".join(
            str(block.get("text", ""))
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        )
        usage = data.get("usage")
        if not isinstance(usage, dict):
            usage = {}

        try:
            return self._parse_draft(
                text,
                context,
                request,
                ModelUsage(
                    model=data.get("model", self._config.model),
                    prompt_tokens=int(usage.get("input_tokens", 0)),
                    completion_tokens=int(usage.get("output_tokens", 0)),
                    response_time_ms=elapsed_ms,
                ),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise ModelCallFailed(f"Unusable model output: {e}", cause=e) from e

    def _parse_draft(
        self,
        text: str,
        context: TradingContext,
        request: RecommendationRequest,
        usage: ModelUsage,
    ) -> DraftRecommendation:
        payload = extract_json_object(text)

        instrument = str(payload["instrument"]).strip()
        if instrument not in request.instruments:
            raise ValueError(f"instrument {instrument} was not requested")

        direction = Direction(str(payload["direction"]).strip().upper())
        confidence = min(max(float(payload.get("confidence", 0.5)), 0.0), 1.0)
        units = float(payload.get("units") or 0)
        if units <= 0:
            raise ValueError("units must be positive")

        expires_at = None
        ttl = payload.get("expires_in_minutes")
        if ttl:
            expires_at = context.timestamp + timedelta(minutes=int(ttl))

        return DraftRecommendation(
            instrument=instrument,
            direction=direction,
            units=units,
            confidence=confidence,
            rationale=str(payload.get("rationale", "")),
            source=DraftSource.MODEL,
            context=context,
            expires_at=expires_at,
            usage=usage,
        )
