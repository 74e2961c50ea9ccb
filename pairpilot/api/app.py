"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pairpilot import __version__
from pairpilot.execution.session import TradingSession
from pairpilot.inference.client import InferenceClient
from pairpilot.models import Capability
from pairpilot.pipeline.stage import AnalysisPipeline
from pairpilot.tracking.performance_tracker import PerformanceTracker

logger = logging.getLogger(__name__)


def create_api_app(
    session: TradingSession,
    pipeline: AnalysisPipeline,
    tracker: PerformanceTracker,
    inference_client: InferenceClient | None = None,
    model_lists: dict[Capability, list[str]] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    session:
        Trading session used by the execution routes. Closed on shutdown.
    pipeline:
        Analysis pipeline used by ``POST /api/analysis``.
    tracker:
        Performance tracker shared with the inference client.
    inference_client:
        Client used by the model-test routes. Its HTTP session is closed
        on shutdown.
    model_lists:
        Configured models per capability. The model-test routes call the
        first one unless a request names another.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.session = session
        app.state.pipeline = pipeline
        app.state.tracker = tracker
        app.state.inference_client = inference_client
        app.state.model_lists = model_lists or {}
        logger.info("PairPilot API ready")
        yield
        await session.close()
        if inference_client is not None:
            await inference_client.close()
        logger.info("PairPilot API shut down")

    app = FastAPI(title="PairPilot", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
        ],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    include_routers(app)
    return app


def include_routers(app: FastAPI) -> None:
    from pairpilot.api.routes import analysis, model_test, model_tracking, trading

    app.include_router(analysis.router, prefix="/api/analysis", tags=["analysis"])
    app.include_router(trading.router, prefix="/api/trading", tags=["trading"])
    app.include_router(
        model_tracking.router, prefix="/api/model-tracking", tags=["model-tracking"]
    )
    app.include_router(model_test.router, prefix="/api/model-test", tags=["model-test"])
