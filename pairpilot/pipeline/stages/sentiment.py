"""Pipeline stage for news sentiment scoring."""

from __future__ import annotations

import logging
from functools import partial

from pairpilot.analysis.cascade import Attempt, try_in_order
from pairpilot.analysis.fallbacks import fallback_sentiment_analysis, sentiment_label
from pairpilot.models import AnalysisOutcome, Capability
from pairpilot.pipeline.context import AnalysisContext
from pairpilot.pipeline.stage import outcome_from_cascade
from pairpilot.utils.constants import LOCAL_SOURCE

logger = logging.getLogger(__name__)


class SentimentStage:
    """Score headlines and summaries in [0, 1], 1 being fully positive."""

    def __init__(self, client, models: list[str]) -> None:
        self._client = client
        self._models = models

    @property
    def name(self) -> str:
        return "Sentiment"

    async def _remote(self, model: str, text: str) -> tuple[float, str]:
        score = await self._client.invoke(Capability.DISTILBERT, {"inputs": text}, model)
        reasoning = (
            f"Sentiment analysis by {model}:\n"
            f"- Overall sentiment: {sentiment_label(score)} ({score * 100:.1f}%)"
        )
        return score, reasoning

    async def _local(self, text: str) -> tuple[float, str]:
        result = fallback_sentiment_analysis(text)
        return float(result.value), result.reasoning

    async def process(self, ctx: AnalysisContext) -> AnalysisContext:
        text = ctx.news.text
        attempts = []
        if not ctx.force_fallback:
            attempts = [Attempt(model, partial(self._remote, model, text)) for model in self._models]
        attempts.append(Attempt(LOCAL_SOURCE, partial(self._local, text), remote=False))

        result = await try_in_order(attempts)
        score, reasoning = result.value
        ctx.sentiment_outcome = outcome_from_cascade(result, score, reasoning)
        return ctx

    def apply_default(self, ctx: AnalysisContext, reason: str) -> AnalysisContext:
        ctx.sentiment_outcome = AnalysisOutcome(
            value=0.5,
            reasoning=f"Sentiment unavailable ({reason}), assuming neutral",
            used_fallback=True,
        )
        return ctx
