"""Tests for AnalysisPipeline runner and the standard stage wiring."""

import json
import random
from unittest.mock import AsyncMock, patch

import pytest

from pairpilot.analysis.fallbacks import fallback_sentiment_analysis
from pairpilot.inference.client import InferenceClient
from pairpilot.inference.errors import UnauthorizedError, UnavailableError
from pairpilot.models import Capability, Decision, MarketSnapshot, NewsContext
from pairpilot.pipeline import build_pipeline
from pairpilot.pipeline.context import AnalysisContext
from pairpilot.pipeline.stage import AnalysisPipeline
from pairpilot.utils.constants import LOCAL_SOURCE

REMOTE_ANSWERS = {
    Capability.TAPAS: "BUY",
    Capability.DISTILBERT: 0.9,
    Capability.DECISION: "BUY\nMomentum is strong.",
    Capability.BART: "Momentum is strong.",
}


class _DummyStage:
    """A simple stage that appends its name to a shared list."""

    def __init__(self, stage_name: str, tracker: list, fail: bool = False):
        self._name = stage_name
        self._tracker = tracker
        self._fail = fail

    @property
    def name(self) -> str:
        return self._name

    async def process(self, ctx: AnalysisContext) -> AnalysisContext:
        if self._fail:
            raise RuntimeError("stage blew up")
        self._tracker.append(self._name)
        return ctx

    def apply_default(self, ctx: AnalysisContext, reason: str) -> AnalysisContext:
        self._tracker.append(f"{self._name}:default:{reason}")
        return ctx


def _remote_client():
    client = AsyncMock()

    async def invoke(capability, payload, model):
        return REMOTE_ANSWERS[capability]

    client.invoke.side_effect = invoke
    return client


class TestRunner:
    async def test_stages_run_in_order(self, neutral_snapshot, empty_news):
        calls = []
        pipeline = AnalysisPipeline([_DummyStage("a", calls), _DummyStage("b", calls)])
        await pipeline.run(AnalysisContext(snapshot=neutral_snapshot, news=empty_news))
        assert calls == ["a", "b"]

    async def test_failing_stage_gets_default_and_pipeline_continues(
        self, neutral_snapshot, empty_news
    ):
        calls = []
        pipeline = AnalysisPipeline([
            _DummyStage("a", calls, fail=True),
            _DummyStage("b", calls),
        ])
        await pipeline.run(AnalysisContext(snapshot=neutral_snapshot, news=empty_news))
        assert calls == ["a:default:RuntimeError: stage blew up", "b"]


class TestStandardPipeline:
    async def test_forced_fallback_scenario(self, failing_client, config, overbought_snapshot, empty_news):
        pipeline = build_pipeline(failing_client, config)
        result = await pipeline.analyze(overbought_snapshot, empty_news, force_fallback=True)

        assert result.risk_score == pytest.approx(0.6)
        assert result.decision is Decision.SELL
        assert result.used_fallback is True
        assert result.tapas_outcome.value == "SELL"
        assert result.sentiment_outcome.value == 0.5
        for outcome in (
            result.tapas_outcome,
            result.sentiment_outcome,
            result.decision_outcome,
            result.summary_outcome,
        ):
            assert outcome.source == LOCAL_SOURCE
            assert outcome.used_fallback is True
        failing_client.invoke.assert_not_awaited()
        failing_client.chat_completion.assert_not_awaited()

    async def test_fallback_summary_extracts_top_sentences(
        self, failing_client, config, overbought_snapshot, empty_news
    ):
        pipeline = build_pipeline(failing_client, config)
        result = await pipeline.analyze(overbought_snapshot, empty_news, force_fallback=True)
        # five narrative sentences -> two kept, in original order
        assert result.summary_outcome.value == (
            "MACD is above the signal line. Recent news sentiment is neutral."
        )

    async def test_all_remote_tiers_succeed(self, config, overbought_snapshot):
        client = _remote_client()
        pipeline = build_pipeline(client, config)
        news = NewsContext(headlines=("Bitcoin rallies",))
        result = await pipeline.analyze(overbought_snapshot, news)

        assert result.decision is Decision.BUY
        assert result.used_fallback is False
        assert result.tapas_outcome.source == "table-a"
        assert result.decision_outcome.source == "decision-a"
        assert result.summary_outcome.value == "Momentum is strong."
        # 0.6 base scenario plus (0.9 - 0.5) * 0.2 sentiment
        assert result.risk_score == pytest.approx(0.68)
        client.chat_completion.assert_not_awaited()

    async def test_single_stage_fallback_marks_result(self, config, overbought_snapshot, empty_news):
        client = _remote_client()

        async def invoke(capability, payload, model):
            if capability is Capability.BART:
                raise UnavailableError("down", capability=capability, model=model)
            return REMOTE_ANSWERS[capability]

        client.invoke.side_effect = invoke
        result = await build_pipeline(client, config).analyze(overbought_snapshot, empty_news)

        assert result.summary_outcome.used_fallback is True
        assert result.tapas_outcome.used_fallback is False
        assert result.used_fallback is True

    async def test_second_table_model_used_after_failure(self, config, neutral_snapshot, empty_news):
        client = _remote_client()

        async def invoke(capability, payload, model):
            if model == "table-a":
                raise UnavailableError("loading", capability=capability, model=model)
            return REMOTE_ANSWERS[capability]

        client.invoke.side_effect = invoke
        result = await build_pipeline(client, config).analyze(neutral_snapshot, empty_news)

        assert result.tapas_outcome.source == "table-b"
        assert result.tapas_outcome.used_fallback is True
        assert "table-a: loading" in result.tapas_outcome.reasoning

    async def test_decision_falls_back_to_chat_completion(self, config, neutral_snapshot, empty_news):
        client = _remote_client()

        async def invoke(capability, payload, model):
            if capability is Capability.DECISION:
                raise UnavailableError("down", capability=capability, model=model)
            return REMOTE_ANSWERS[capability]

        client.invoke.side_effect = invoke
        client.chat_completion.return_value = "SELL\nWeak tape."
        result = await build_pipeline(client, config).analyze(neutral_snapshot, empty_news)

        assert result.decision is Decision.SELL
        assert result.decision_outcome.source == "chat-completion"
        assert result.decision_outcome.used_fallback is True

    async def test_unauthorized_skips_every_remote_tier(self, config, neutral_snapshot, empty_news):
        client = AsyncMock()
        client.invoke.side_effect = UnauthorizedError("bad token")
        client.chat_completion.side_effect = AssertionError("should be skipped")
        result = await build_pipeline(client, config).analyze(neutral_snapshot, empty_news)

        assert result.decision_outcome.source == LOCAL_SOURCE
        client.chat_completion.assert_not_awaited()
        # one remote attempt per stage, the rest skipped
        assert client.invoke.await_count == 4

    async def test_unexpected_client_error_uses_stage_default(self, config, neutral_snapshot, empty_news):
        client = AsyncMock()
        client.invoke.side_effect = AssertionError("bug")
        client.chat_completion.side_effect = AssertionError("bug")
        result = await build_pipeline(client, config).analyze(neutral_snapshot, empty_news)

        assert result.decision is Decision.HOLD
        assert result.tapas_outcome.value == "HOLD"
        assert result.sentiment_outcome.value == 0.5
        assert result.used_fallback is True


class TestUnreadableRemoteAnswers:
    async def test_null_sentiment_score_falls_back_to_keywords(self, config, tracker, neutral_snapshot):
        client = InferenceClient(config, tracker)
        news = NewsContext(headlines=("bullish bullish strong growth",))

        async def post(url, headers, payload, timeout):
            if url.endswith("/sentiment-a"):
                return 200, "application/json", json.dumps([{"label": "POSITIVE", "score": None}])
            return 500, "application/json", "{}"

        with patch.object(client, "_post", AsyncMock(side_effect=post)):
            result = await build_pipeline(client, config).analyze(neutral_snapshot, news)

        expected = fallback_sentiment_analysis(news.text).value
        assert expected > 0.5
        assert result.sentiment_outcome.value == pytest.approx(expected)
        assert result.sentiment_outcome.source == LOCAL_SOURCE
        assert result.sentiment_outcome.used_fallback is True
        assert "sentiment-a" in result.sentiment_outcome.reasoning


_HEADLINE_WORDS = ["bullish", "bearish", "growth", "crash", "rally", "steady", "volatile", "record"]


def _random_snapshot(rng):
    return MarketSnapshot(
        rsi=rng.uniform(0, 100),
        macd=rng.uniform(-3, 3),
        signal_line=rng.uniform(-3, 3),
        volume=rng.uniform(0, 5_000_000),
        price=rng.uniform(0.01, 100_000),
    )


def _flaky_client(rng, failure_rate):
    """Remote client that fails at random and notes whether each capability's first call failed."""
    client = AsyncMock()
    first_failed: dict[Capability, bool] = {}

    def outcome(capability, model):
        failed = rng.random() < failure_rate
        first_failed.setdefault(capability, failed)
        if failed:
            raise UnavailableError("flaky", capability=capability, model=model)

    async def invoke(capability, payload, model):
        outcome(capability, model)
        return REMOTE_ANSWERS[capability]

    async def chat_completion(capability, prompt, **kwargs):
        outcome(capability, "chat-completion")
        return rng.choice(["BUY\nup", "SELL\ndown", "HOLD\nflat"])

    client.invoke.side_effect = invoke
    client.chat_completion.side_effect = chat_completion
    return client, first_failed


class TestRandomizedRuns:
    @pytest.mark.parametrize("seed", range(25))
    async def test_result_is_always_well_formed(self, config, seed):
        rng = random.Random(seed)
        client, first_failed = _flaky_client(rng, failure_rate=rng.choice([0.0, 0.3, 0.7, 1.0]))
        news = NewsContext(
            headlines=tuple(" ".join(rng.sample(_HEADLINE_WORDS, 3)) for _ in range(rng.randint(0, 3)))
        )

        result = await build_pipeline(client, config).analyze(_random_snapshot(rng), news)

        assert result.decision in set(Decision)
        assert 0.0 <= result.risk_score <= 1.0
        assert 0.0 <= float(result.sentiment_outcome.value) <= 1.0
        outcomes = {
            Capability.TAPAS: result.tapas_outcome,
            Capability.DISTILBERT: result.sentiment_outcome,
            Capability.DECISION: result.decision_outcome,
            Capability.BART: result.summary_outcome,
        }
        for capability, outcome in outcomes.items():
            assert outcome.used_fallback is first_failed[capability], capability
        assert result.used_fallback is any(o.used_fallback for o in outcomes.values())
        assert result.used_fallback is any(first_failed.values())
