"""Model tracking API routes."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from pairpilot.api.deps import get_tracker
from pairpilot.api.schemas import (
    CapabilityTrackingResponse,
    HealthOut,
    MetricsOut,
    OutcomeOut,
    OutcomeRequest,
    PredictionOut,
    TrackingResponse,
)
from pairpilot.models import (
    Capability,
    CapabilityMetrics,
    ConnectionHealth,
    OutcomeRecord,
    PredictionRecord,
)

router = APIRouter()


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _metrics(m: CapabilityMetrics) -> MetricsOut:
    return MetricsOut(
        total_count=m.total_count,
        success_rate=m.success_rate,
        average_latency_ms=m.average_latency_ms,
        accuracy=m.accuracy,
        error_rate=m.error_rate,
        last_used=_iso(m.last_used),
    )


def health_out(h: ConnectionHealth) -> HealthOut:
    return HealthOut(
        status=h.status.value,
        last_checked=_iso(h.last_checked),
        last_latency_ms=h.last_latency_ms,
        last_error=h.last_error,
    )


def _prediction(p: PredictionRecord) -> PredictionOut:
    return PredictionOut(
        id=p.id,
        timestamp=p.timestamp.isoformat(),
        capability=p.capability.value,
        model=p.model,
        input=p.input,
        output=p.output,
        latency_ms=p.latency_ms,
        success=p.success,
        error=p.error,
    )


def _outcome(o: OutcomeRecord) -> OutcomeOut:
    return OutcomeOut(
        prediction_id=o.prediction_id,
        timestamp=o.timestamp.isoformat(),
        correct=o.correct,
        actual_outcome=o.actual_outcome,
        notes=o.notes,
    )


@router.get("")
async def get_tracking(tracker=Depends(get_tracker)) -> TrackingResponse:
    """Return every prediction, outcome, metric and health record held."""
    snap = tracker.snapshot()
    return TrackingResponse(
        predictions=[_prediction(p) for p in snap["predictions"]],
        outcomes=[_outcome(o) for o in snap["outcomes"]],
        metrics={cap.value: _metrics(m) for cap, m in snap["metrics"].items()},
        health={cap.value: health_out(h) for cap, h in snap["health"].items()},
    )


@router.get("/{capability}")
async def get_capability(
    capability: str,
    limit: int = Query(10, ge=1, le=1000),
    tracker=Depends(get_tracker),
) -> CapabilityTrackingResponse:
    try:
        cap = Capability(capability.lower())
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown capability: {capability}") from exc
    return CapabilityTrackingResponse(
        capability=cap.value,
        metrics=_metrics(tracker.metrics(cap)),
        health=health_out(tracker.health(cap)),
        recent_predictions=[_prediction(p) for p in tracker.recent_predictions(cap, limit)],
    )


@router.post("/outcomes")
async def record_outcome(body: OutcomeRequest, tracker=Depends(get_tracker)) -> OutcomeOut:
    """Grade an earlier prediction as correct or incorrect."""
    try:
        record = tracker.record_outcome(
            body.prediction_id, body.correct, body.actual_outcome, body.notes
        )
    except KeyError as exc:
        raise HTTPException(
            status_code=404, detail=f"Unknown prediction: {body.prediction_id}"
        ) from exc
    return _outcome(record)


@router.delete("")
async def clear_tracking(tracker=Depends(get_tracker)):
    tracker.clear()
    return {"ok": True}
