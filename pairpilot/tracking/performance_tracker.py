"""In-memory performance tracking for remote inference capabilities.

Every inference attempt is appended to a per-capability ring buffer and folded
into running metrics. Methods never await, so each update is atomic with
respect to other coroutines on the event loop.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime

from pairpilot.models import (
    Capability,
    CapabilityMetrics,
    ConnectionHealth,
    HealthStatus,
    OutcomeRecord,
    PredictionRecord,
)
from pairpilot.tracking.ring_buffer import RingBuffer
from pairpilot.utils.constants import TRACKER_CAPACITY, UTC

logger = logging.getLogger(__name__)

_MAX_TEXT_LENGTH = 500


def _truncate(text: str | None) -> str | None:
    if text is None or len(text) <= _MAX_TEXT_LENGTH:
        return text
    return text[:_MAX_TEXT_LENGTH] + "..."


def _new_prediction_id(now: datetime) -> str:
    return f"pred_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


class PerformanceTracker:
    """Rolling store of predictions, graded outcomes, metrics and health."""

    def __init__(self, capacity: int = TRACKER_CAPACITY) -> None:
        self._capacity = capacity
        self._predictions: dict[Capability, RingBuffer[PredictionRecord]] = {}
        self._outcomes: RingBuffer[OutcomeRecord] = RingBuffer(capacity)
        self._metrics: dict[Capability, CapabilityMetrics] = {}
        self._health: dict[Capability, ConnectionHealth] = {}
        self._graded: dict[Capability, list[int]] = {}  # capability -> [correct, total]
        self._prediction_index: dict[str, Capability] = {}
        self._reset()

    def _reset(self) -> None:
        for cap in Capability:
            self._predictions[cap] = RingBuffer(self._capacity)
            self._metrics[cap] = CapabilityMetrics()
            self._health[cap] = ConnectionHealth()
            self._graded[cap] = [0, 0]
        self._outcomes.clear()
        self._prediction_index.clear()

    # -- recording ----------------------------------------------------------

    def record_prediction(
        self,
        capability: Capability,
        model: str,
        input_text: str,
        output: str | None,
        latency_ms: float,
        success: bool,
        error: str | None = None,
    ) -> PredictionRecord:
        """Append an inference attempt and update the capability's metrics."""
        now = datetime.now(UTC)
        record = PredictionRecord(
            id=_new_prediction_id(now),
            timestamp=now,
            capability=capability,
            model=model,
            input=_truncate(input_text) or "",
            output=_truncate(output),
            latency_ms=latency_ms,
            success=success,
            error=error,
        )
        evicted = self._predictions[capability].append(record)
        if evicted is not None:
            self._prediction_index.pop(evicted.id, None)
        self._prediction_index[record.id] = capability

        metrics = self._metrics[capability]
        n = metrics.total_count + 1
        metrics.success_rate = (metrics.success_rate * (n - 1) + (1.0 if success else 0.0)) / n
        metrics.average_latency_ms = (metrics.average_latency_ms * (n - 1) + latency_ms) / n
        metrics.error_rate = 1.0 - metrics.success_rate
        metrics.total_count = n
        metrics.last_used = now

        logger.debug(
            "Recorded %s prediction via %s (success=%s, %.0fms)",
            capability.value, model, success, latency_ms,
        )
        return record

    def record_outcome(
        self,
        prediction_id: str,
        correct: bool,
        actual_outcome: str,
        notes: str | None = None,
    ) -> OutcomeRecord:
        """Grade an earlier prediction.

        Raises:
            KeyError: *prediction_id* is unknown or has been evicted.
        """
        capability = self._prediction_index.get(prediction_id)
        if capability is None:
            raise KeyError(prediction_id)

        record = OutcomeRecord(
            prediction_id=prediction_id,
            timestamp=datetime.now(UTC),
            correct=correct,
            actual_outcome=actual_outcome,
            notes=notes,
        )
        self._outcomes.append(record)

        graded = self._graded[capability]
        graded[0] += 1 if correct else 0
        graded[1] += 1
        self._metrics[capability].accuracy = graded[0] / graded[1]
        return record

    def update_health(
        self,
        capability: Capability,
        status: HealthStatus,
        latency_ms: float,
        error: str | None = None,
    ) -> None:
        self._health[capability] = ConnectionHealth(
            status=status,
            last_checked=datetime.now(UTC),
            last_latency_ms=latency_ms,
            last_error=error,
        )

    # -- accessors ------------------------------------------------------------

    def health(self, capability: Capability) -> ConnectionHealth:
        return self._health[capability]

    def metrics(self, capability: Capability) -> CapabilityMetrics:
        return replace(self._metrics[capability])

    def recent_predictions(self, capability: Capability, limit: int = 10) -> list[PredictionRecord]:
        """Return the newest *limit* predictions for *capability*, newest first."""
        return self._predictions[capability].newest(limit)

    def predictions(self, capability: Capability | None = None) -> list[PredictionRecord]:
        """Return predictions oldest first, across all capabilities by default."""
        if capability is not None:
            return list(self._predictions[capability])
        merged = [r for buf in self._predictions.values() for r in buf]
        merged.sort(key=lambda r: r.timestamp)
        return merged

    def outcomes(self) -> list[OutcomeRecord]:
        return list(self._outcomes)

    def snapshot(self) -> dict:
        """Everything the tracker holds, keyed for the tracking API."""
        return {
            "predictions": self.predictions(),
            "outcomes": self.outcomes(),
            "metrics": {cap: self.metrics(cap) for cap in Capability},
            "health": {cap: self.health(cap) for cap in Capability},
        }

    def clear(self) -> None:
        """Drop all records, metrics and health."""
        self._reset()
        logger.info("Performance tracking data cleared")
