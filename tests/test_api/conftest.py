"""API test fixtures."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from httpx import ASGITransport, AsyncClient

from pairpilot.api.app import include_routers
from pairpilot.execution.session import TradingSession
from pairpilot.inference.client import InferenceClient
from pairpilot.models import Balance, Capability, FundingRate
from pairpilot.pipeline import build_pipeline


def _build_test_app() -> FastAPI:
    """Build a FastAPI app without lifespan (state set by fixture)."""
    app = FastAPI(title="PairPilot Test", version="0.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    include_routers(app)
    return app


@pytest.fixture
def spot_exchange():
    mock = AsyncMock()
    mock.balances.return_value = [Balance(asset="USDT", free=900.0, locked=100.0)]
    mock.open_orders.return_value = []
    return mock


@pytest.fixture
def futures_exchange():
    mock = AsyncMock()
    mock.balances.return_value = [Balance(asset="USDT", free=500.0)]
    mock.positions.return_value = []
    mock.funding_rate.return_value = FundingRate(
        symbol="BTCUSDT",
        funding_rate=0.0001,
        mark_price=50010.0,
        index_price=50000.0,
        next_funding_time=datetime(2024, 1, 1, 8, tzinfo=timezone.utc),
    )
    return mock


@pytest.fixture
def trading_session(spot_exchange, futures_exchange):
    return TradingSession(spot_exchange, futures_exchange)


@pytest.fixture
def remote_client(config, tracker):
    """Real inference client for the model-test routes; tests patch its _post."""
    return InferenceClient(config, tracker)


@pytest.fixture
async def api_client(trading_session, failing_client, remote_client, config, tracker):
    """httpx AsyncClient wired to a fresh app.

    The pipeline's inference client fails on any remote call, so analysis
    requests here only exercise the local heuristics.
    """
    app = _build_test_app()
    app.state.session = trading_session
    app.state.pipeline = build_pipeline(failing_client, config)
    app.state.tracker = tracker
    app.state.inference_client = remote_client
    app.state.model_lists = {
        Capability.TAPAS: config.table_model_list,
        Capability.DISTILBERT: config.sentiment_model_list,
        Capability.DECISION: config.decision_model_list,
        Capability.BART: config.summary_model_list,
    }
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
