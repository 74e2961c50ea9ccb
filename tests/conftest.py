"""Shared test fixtures for PairPilot."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from pairpilot.models import MarketSnapshot, NewsContext
from pairpilot.tracking.performance_tracker import PerformanceTracker


@pytest.fixture
def required_env(monkeypatch):
    """Set the credentials AppConfig reads from the environment."""
    monkeypatch.setenv("HF_API_TOKEN", "hf_test_token")
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test")
    monkeypatch.setenv("BINANCE_API_KEY", "binance_key")
    monkeypatch.setenv("BINANCE_API_SECRET", "binance_secret")


@pytest.fixture
def overbought_snapshot():
    return MarketSnapshot(rsi=75.0, macd=0.1, signal_line=0.05, volume=2_000_000.0, price=50000.0)


@pytest.fixture
def neutral_snapshot():
    return MarketSnapshot(rsi=50.0, macd=0.0, signal_line=0.0, volume=500_000.0, price=3000.0)


@pytest.fixture
def empty_news():
    return NewsContext()


@pytest.fixture
def tracker():
    return PerformanceTracker(capacity=50)


def make_config(**overrides):
    """SimpleNamespace carrying every AppConfig field the pipeline and client read."""
    defaults = dict(
        hf_api_token="hf_test_token",
        deepseek_api_key="sk-test",
        hf_inference_url="https://inference.test/models",
        chat_completion_url="https://chat.test/v1/chat/completions",
        chat_completion_model="test-chat",
        inference_timeout_seconds=5.0,
        decision_timeout_seconds=7.0,
        table_model_list=["table-a", "table-b"],
        sentiment_model_list=["sentiment-a"],
        decision_model_list=["decision-a"],
        summary_model_list=["summary-a"],
        risk_base=0.5,
        risk_rsi_step=0.1,
        risk_macd_step=0.05,
        risk_volume_threshold=1_000_000.0,
        risk_volume_step=0.05,
        risk_sentiment_weight=0.2,
        rsi_overbought=70.0,
        rsi_oversold=30.0,
        risk_override_threshold=0.7,
        macd_buy_max_risk=0.5,
        volatile_hold_min_risk=0.5,
        uptrend_buy_max_risk=0.6,
    )
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def failing_client():
    """Inference client whose remote tiers should never be reached."""
    client = AsyncMock()
    client.invoke.side_effect = AssertionError("remote tier called")
    client.chat_completion.side_effect = AssertionError("remote tier called")
    return client


@pytest.fixture
def config_factory():
    """Build a config namespace with selected fields overridden."""
    return make_config
