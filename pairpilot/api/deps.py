"""FastAPI dependency injection for API routes."""

from __future__ import annotations

from fastapi import HTTPException, Request

from pairpilot.execution.session import TradingSession
from pairpilot.inference.client import InferenceClient
from pairpilot.models import Capability
from pairpilot.pipeline.stage import AnalysisPipeline
from pairpilot.tracking.performance_tracker import PerformanceTracker


def get_session(request: Request) -> TradingSession:
    return request.app.state.session


def get_pipeline(request: Request) -> AnalysisPipeline:
    return request.app.state.pipeline


def get_tracker(request: Request) -> PerformanceTracker:
    return request.app.state.tracker


def get_inference_client(request: Request) -> InferenceClient:
    client = getattr(request.app.state, "inference_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Inference client not configured")
    return client


def get_model_lists(request: Request) -> dict[Capability, list[str]]:
    return getattr(request.app.state, "model_lists", None) or {}
