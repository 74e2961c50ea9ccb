"""Async client for remote analysis capabilities.

Two wire formats are supported: model inference endpoints addressed by model
identifier (``invoke``) and an OpenAI-compatible chat completion endpoint
(``chat_completion``). Both classify every failure into an
``InferenceError`` subclass and report the attempt to the performance
tracker, whatever the outcome.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from typing import Any

import aiohttp

from pairpilot.inference.errors import (
    InferenceError,
    InferenceTimeoutError,
    MalformedResponseError,
    RateLimitedError,
    UnauthorizedError,
    UnavailableError,
)
from pairpilot.models import Capability, HealthStatus
from pairpilot.tracking.performance_tracker import PerformanceTracker
from pairpilot.utils.log_context import log_context

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response extractors: return the useful value or raise MalformedResponseError
# ---------------------------------------------------------------------------


def _extract_table_answer(data: Any) -> str:
    if isinstance(data, dict) and isinstance(data.get("answer"), str):
        return data["answer"]
    raise MalformedResponseError("Table response has no 'answer' field")


def _extract_positive_score(data: Any) -> float:
    """Pull the POSITIVE probability out of a (possibly nested) label list."""
    items = data
    if isinstance(items, list) and items and isinstance(items[0], list):
        items = items[0]
    if not isinstance(items, list):
        raise MalformedResponseError("Sentiment response is not a list")

    scores: dict[str, float] = {}
    for item in items:
        if isinstance(item, dict) and "label" in item and "score" in item:
            try:
                score = float(item["score"])
            except (TypeError, ValueError) as exc:
                raise MalformedResponseError(
                    f"Sentiment score is not a number: {item['score']!r}"
                ) from exc
            if not 0.0 <= score <= 1.0:
                raise MalformedResponseError(f"Sentiment score out of range: {score}")
            scores[str(item["label"]).upper()] = score

    if "POSITIVE" in scores:
        return scores["POSITIVE"]
    if "NEGATIVE" in scores:
        # no POSITIVE probability to read; treat as neutral
        return 0.5
    raise MalformedResponseError("Sentiment response has no POSITIVE/NEGATIVE labels")


def _extract_generated_text(data: Any) -> str:
    if isinstance(data, list) and data and isinstance(data[0], dict):
        text = data[0].get("generated_text")
        if isinstance(text, str):
            return text
    raise MalformedResponseError("Generation response has no 'generated_text'")


def _extract_summary_text(data: Any) -> str:
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict) and isinstance(data.get("summary_text"), str):
        return data["summary_text"]
    raise MalformedResponseError("Summary response has no 'summary_text'")


def _extract_chat_content(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedResponseError("Chat response has no message content") from exc
    if not isinstance(content, str):
        raise MalformedResponseError("Chat message content is not text")
    return content


_EXTRACTORS: dict[Capability, Callable[[Any], Any]] = {
    Capability.TAPAS: _extract_table_answer,
    Capability.DISTILBERT: _extract_positive_score,
    Capability.DECISION: _extract_generated_text,
    Capability.BART: _extract_summary_text,
}


class InferenceClient:
    """Invokes remote capabilities with a fixed per-call timeout."""

    def __init__(self, config, tracker: PerformanceTracker) -> None:
        self._config = config
        self._tracker = tracker
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    def _timeout_for(self, capability: Capability) -> float:
        if capability is Capability.DECISION:
            return self._config.decision_timeout_seconds
        return self._config.inference_timeout_seconds

    async def _post(
        self,
        url: str,
        headers: dict[str, str],
        payload: dict[str, Any],
        timeout: float,
    ) -> tuple[int, str, str]:
        """POST *payload* and return (status, content type, body text)."""
        session = await self._get_session()
        async with session.post(
            url,
            json=payload,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            body = await response.text()
            return response.status, response.headers.get("Content-Type", ""), body

    @staticmethod
    def _decode(
        capability: Capability,
        model: str,
        status: int,
        content_type: str,
        body: str,
    ) -> Any:
        """Map an HTTP response onto parsed JSON or a typed failure."""
        ctx = {"capability": capability, "model": model, "status": status}
        is_html = "text/html" in content_type.lower()

        if not 200 <= status < 300:
            if status in (401, 403):
                raise UnauthorizedError("Invalid or expired API token", **ctx)
            if status == 429:
                raise RateLimitedError("Rate limit exceeded", **ctx)
            if is_html:
                raise UnavailableError(
                    f"Service returned HTML instead of JSON (status {status})", **ctx
                )
            if status == 503:
                raise UnavailableError(f"Model {model} is temporarily unavailable", **ctx)
            raise UnavailableError(f"Inference API error: {status}", **ctx)

        if is_html or "json" not in content_type.lower():
            raise UnavailableError(
                f"Expected JSON response but got {content_type or 'no content type'}", **ctx
            )
        try:
            return json.loads(body)
        except ValueError as exc:
            raise UnavailableError("Response body is not valid JSON", **ctx) from exc

    async def _call(
        self,
        capability: Capability,
        model: str,
        url: str,
        token: str,
        payload: dict[str, Any],
        extract: Callable[[Any], Any],
    ) -> Any:
        async with log_context(capability=capability.value):
            return await self._attempt(capability, model, url, token, payload, extract)

    async def _attempt(
        self,
        capability: Capability,
        model: str,
        url: str,
        token: str,
        payload: dict[str, Any],
        extract: Callable[[Any], Any],
    ) -> Any:
        start = time.monotonic()
        status = HealthStatus.DISCONNECTED
        output: str | None = None
        error: str | None = None
        try:
            if not token:
                raise UnauthorizedError(
                    "Inference API token is not configured", capability=capability, model=model
                )
            headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
            try:
                http_status, content_type, body = await self._post(
                    url, headers, payload, self._timeout_for(capability)
                )
            except asyncio.TimeoutError as exc:
                raise InferenceTimeoutError(
                    f"Request to {model} timed out", capability=capability, model=model
                ) from exc
            except aiohttp.ClientError as exc:
                raise UnavailableError(
                    f"Connection to {model} failed: {exc}", capability=capability, model=model
                ) from exc

            data = self._decode(capability, model, http_status, content_type, body)
            try:
                value = extract(data)
            except MalformedResponseError as exc:
                exc.capability, exc.model, exc.status = capability, model, http_status
                raise
            except Exception as exc:
                raise MalformedResponseError(
                    f"Unreadable {capability.value} response: {type(exc).__name__}: {exc}",
                    capability=capability,
                    model=model,
                    status=http_status,
                ) from exc
            status = HealthStatus.CONNECTED
            output = str(value)
            return value
        except InferenceError as exc:
            status = exc.health_status
            error = str(exc)
            logger.warning("%s call to %s failed: %s", capability.value, model, exc)
            raise
        except Exception as exc:
            status = HealthStatus.DEGRADED
            error = f"{type(exc).__name__}: {exc}"
            logger.exception("%s call to %s failed unexpectedly", capability.value, model)
            raise UnavailableError(
                f"Unexpected failure calling {model}: {error}", capability=capability, model=model
            ) from exc
        finally:
            latency_ms = (time.monotonic() - start) * 1000
            self._tracker.update_health(capability, status, latency_ms, error)
            self._tracker.record_prediction(
                capability,
                model,
                json.dumps(payload, default=str),
                output,
                latency_ms,
                success=error is None,
                error=error,
            )

    async def invoke(self, capability: Capability, payload: dict[str, Any], model: str) -> Any:
        """Call *model* on the inference endpoint and return the extracted value.

        Returns a str for table, decision and summary capabilities and the
        positive-sentiment probability (float) for sentiment.
        """
        url = f"{self._config.hf_inference_url.rstrip('/')}/{model}"
        return await self._call(
            capability, model, url, self._config.hf_api_token, payload, _EXTRACTORS[capability]
        )

    async def chat_completion(
        self,
        capability: Capability,
        prompt: str,
        model: str | None = None,
        max_tokens: int = 500,
        temperature: float = 0.1,
    ) -> str:
        """Send *prompt* as a single user message and return the reply text."""
        model = model or self._config.chat_completion_model
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        token = self._config.deepseek_api_key or self._config.hf_api_token
        return await self._call(
            capability,
            model,
            self._config.chat_completion_url,
            token,
            payload,
            _extract_chat_content,
        )

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
