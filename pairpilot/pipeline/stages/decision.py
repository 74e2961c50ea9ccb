"""Pipeline stage for trading decision synthesis."""

from __future__ import annotations

import logging
from functools import partial

from pairpilot.analysis.cascade import Attempt, try_in_order
from pairpilot.analysis.fallbacks import DecisionThresholds, fallback_decision, parse_decision
from pairpilot.models import AnalysisOutcome, Capability, Decision
from pairpilot.pipeline.context import AnalysisContext
from pairpilot.pipeline.stage import outcome_from_cascade
from pairpilot.utils.constants import LOCAL_SOURCE

logger = logging.getLogger(__name__)

_GENERATION_PARAMETERS = {
    "max_new_tokens": 500,
    "temperature": 0.1,
    "return_full_text": False,
}


def build_decision_prompt(ctx: AnalysisContext, risk_override: float = 0.7) -> str:
    """Compose the prompt sent to the decision models."""
    snap = ctx.snapshot
    table_answer = ctx.tapas_outcome.value if ctx.tapas_outcome else "unavailable"
    risk = ctx.risk_score if ctx.risk_score is not None else 0.5
    return (
        "You are a trading assistant that helps make decisions based on market indicators.\n\n"
        "Given the following information, provide a clear trading decision (BUY, SELL, or HOLD) "
        "followed by your reasoning.\n"
        "Your response should start with the decision in capital letters on the first line, "
        "then provide your detailed reasoning.\n\n"
        "Technical Indicators:\n"
        f"- RSI: {snap.rsi:.2f}\n"
        f"- MACD: {snap.macd:.4f}\n"
        f"- Signal Line: {snap.signal_line:.4f}\n"
        f"- Price: {snap.price:.2f}\n"
        f"- Volume: {snap.volume:.0f}\n\n"
        "Market Analysis:\n"
        f"- {table_answer}\n\n"
        "News Sentiment:\n"
        f"- Sentiment Score: {ctx.sentiment_score:.2f} (0=negative, 1=positive)\n\n"
        "Risk Level:\n"
        f"- {risk:.2f} (0=low risk, 1=high risk)\n\n"
        "Remember to consider risk levels carefully. "
        f"If risk is high (>{risk_override:g}), be more conservative in your recommendation."
    )


class DecisionStage:
    """Synthesize BUY/SELL/HOLD from the upstream outcomes and the risk score.

    Remote tiers are the text-generation models followed by the chat
    completion endpoint; the local tier is the rule cascade in
    ``fallback_decision``.
    """

    def __init__(self, client, models: list[str], thresholds: DecisionThresholds) -> None:
        self._client = client
        self._models = models
        self._thresholds = thresholds

    @property
    def name(self) -> str:
        return "Decision"

    async def _generate(self, model: str, prompt: str) -> tuple[Decision, str]:
        payload = {"inputs": prompt, "parameters": _GENERATION_PARAMETERS}
        text = await self._client.invoke(Capability.DECISION, payload, model)
        return parse_decision(text), text.strip()

    async def _chat(self, prompt: str) -> tuple[Decision, str]:
        text = await self._client.chat_completion(Capability.DECISION, prompt)
        return parse_decision(text), text.strip()

    async def _local(self, ctx: AnalysisContext) -> tuple[Decision, str]:
        table_answer = str(ctx.tapas_outcome.value) if ctx.tapas_outcome else ""
        result = fallback_decision(
            rsi=ctx.snapshot.rsi,
            macd=ctx.snapshot.macd,
            signal_line=ctx.snapshot.signal_line,
            risk_score=ctx.risk_score if ctx.risk_score is not None else 0.5,
            context_text=f"{ctx.news.text} {table_answer}",
            thresholds=self._thresholds,
        )
        return result.value, result.reasoning

    async def process(self, ctx: AnalysisContext) -> AnalysisContext:
        attempts = []
        if not ctx.force_fallback:
            prompt = build_decision_prompt(ctx, self._thresholds.risk_override)
            attempts = [
                Attempt(model, partial(self._generate, model, prompt)) for model in self._models
            ]
            attempts.append(Attempt("chat-completion", partial(self._chat, prompt)))
        attempts.append(Attempt(LOCAL_SOURCE, partial(self._local, ctx), remote=False))

        result = await try_in_order(attempts)
        decision, reasoning = result.value
        ctx.decision = decision
        ctx.decision_outcome = outcome_from_cascade(result, decision.value, reasoning)
        return ctx

    def apply_default(self, ctx: AnalysisContext, reason: str) -> AnalysisContext:
        ctx.decision = Decision.HOLD
        ctx.decision_outcome = AnalysisOutcome(
            value=Decision.HOLD.value,
            reasoning=f"Decision synthesis unavailable ({reason}), defaulting to HOLD",
            used_fallback=True,
        )
        return ctx
