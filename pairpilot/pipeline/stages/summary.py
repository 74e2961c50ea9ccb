"""Pipeline stage that condenses a market narrative."""

from __future__ import annotations

from functools import partial

from pairpilot.analysis.cascade import Attempt, try_in_order
from pairpilot.analysis.fallbacks import DecisionThresholds, fallback_summarization
from pairpilot.models import AnalysisOutcome, Capability, Decision
from pairpilot.pipeline.context import AnalysisContext
from pairpilot.pipeline.stage import outcome_from_cascade
from pairpilot.utils.constants import LOCAL_SOURCE


def _plain(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def build_narrative(ctx: AnalysisContext, thresholds: DecisionThresholds = DecisionThresholds()) -> str:
    snap = ctx.snapshot
    if snap.rsi > thresholds.rsi_overbought:
        rsi_state = "overbought"
    elif snap.rsi < thresholds.rsi_oversold:
        rsi_state = "oversold"
    else:
        rsi_state = "neutral"

    sentiment = ctx.sentiment_score
    if sentiment > 0.6:
        mood = "positive"
    elif sentiment < 0.4:
        mood = "negative"
    else:
        mood = "neutral"

    decision = (ctx.decision or Decision.HOLD).value
    return (
        f"Market Analysis: RSI is {snap.rsi:.2f} which is {rsi_state}. "
        f"MACD is {'above' if snap.macd > snap.signal_line else 'below'} the signal line. "
        f"The current price is {_plain(snap.price)} with a volume of {_plain(snap.volume)}. "
        f"Recent news sentiment is {mood}. "
        f"The trading decision is to {decision}."
    )


class SummaryStage:
    def __init__(self, client, models: list[str], thresholds: DecisionThresholds) -> None:
        self._client = client
        self._models = models
        self._thresholds = thresholds

    @property
    def name(self) -> str:
        return "Summary"

    async def _remote(self, model: str, narrative: str) -> tuple[str, str]:
        summary = await self._client.invoke(Capability.BART, {"inputs": narrative}, model)
        return summary, f"Summary generated by {model}"

    async def _local(self, narrative: str) -> tuple[str, str]:
        result = fallback_summarization(narrative)
        return str(result.value), result.reasoning

    async def process(self, ctx: AnalysisContext) -> AnalysisContext:
        narrative = build_narrative(ctx, self._thresholds)
        attempts = []
        if not ctx.force_fallback:
            attempts = [
                Attempt(model, partial(self._remote, model, narrative)) for model in self._models
            ]
        attempts.append(Attempt(LOCAL_SOURCE, partial(self._local, narrative), remote=False))

        result = await try_in_order(attempts)
        summary, reasoning = result.value
        ctx.summary_outcome = outcome_from_cascade(result, summary, reasoning)
        return ctx

    def apply_default(self, ctx: AnalysisContext, reason: str) -> AnalysisContext:
        ctx.summary_outcome = AnalysisOutcome(
            value="Summary unavailable.",
            reasoning=f"Summarization failed ({reason})",
            used_fallback=True,
        )
        return ctx
