"""Pipeline stage protocol and the analysis runner."""

from __future__ import annotations

import logging
import uuid
from typing import Protocol

from pairpilot.analysis.cascade import CascadeResult
from pairpilot.models import AnalysisOutcome, Decision, MarketSnapshot, NewsContext, PipelineResult
from pairpilot.pipeline.context import AnalysisContext
from pairpilot.utils.log_context import log_context

logger = logging.getLogger(__name__)


class PipelineStage(Protocol):
    """Interface for a single composable analysis stage."""

    @property
    def name(self) -> str: ...

    async def process(self, ctx: AnalysisContext) -> AnalysisContext: ...

    def apply_default(self, ctx: AnalysisContext, reason: str) -> AnalysisContext:
        """Install the stage's deterministic default result on *ctx*."""
        ...


def outcome_from_cascade(result: CascadeResult, value: str | float, reasoning: str) -> AnalysisOutcome:
    """Build a stage outcome, noting every tier that failed before *result*."""
    if result.failures:
        failed = "; ".join(f"{name}: {exc}" for name, exc in result.failures)
        reasoning = f"{reasoning}\n- Earlier tiers failed ({failed})"
    return AnalysisOutcome(
        value=value,
        reasoning=reasoning,
        used_fallback=result.used_fallback,
        source=result.attempt,
    )


class AnalysisPipeline:
    """Runs analysis stages in order and assembles the PipelineResult.

    A stage that raises is logged and replaced by its deterministic default,
    so ``analyze`` always returns a result.
    """

    def __init__(self, stages: list[PipelineStage]) -> None:
        self._stages = stages

    async def run(self, ctx: AnalysisContext) -> AnalysisContext:
        """Execute every stage on *ctx* and return the (mutated) context."""
        for stage in self._stages:
            async with log_context(stage=stage.name):
                try:
                    ctx = await stage.process(ctx)
                except Exception as exc:
                    logger.exception("Stage %s failed, using default result", stage.name)
                    ctx = stage.apply_default(ctx, f"{type(exc).__name__}: {exc}")
        return ctx

    async def analyze(
        self,
        snapshot: MarketSnapshot,
        news: NewsContext,
        force_fallback: bool = False,
        symbol: str | None = None,
    ) -> PipelineResult:
        """Run the full analysis for one snapshot.

        With *force_fallback* every stage skips its remote tiers and runs its
        local heuristic directly.
        """
        request_id = uuid.uuid4().hex[:12]
        async with log_context(request_id=request_id, symbol=symbol):
            ctx = AnalysisContext(
                snapshot=snapshot,
                news=news,
                request_id=request_id,
                force_fallback=force_fallback,
            )
            ctx = await self.run(ctx)
            result = PipelineResult(
                decision=ctx.decision or Decision.HOLD,
                risk_score=ctx.risk_score if ctx.risk_score is not None else 0.5,
                tapas_outcome=ctx.tapas_outcome,
                sentiment_outcome=ctx.sentiment_outcome,
                decision_outcome=ctx.decision_outcome,
                summary_outcome=ctx.summary_outcome,
            )
            logger.info(
                "Analysis complete: decision=%s risk=%.2f fallback=%s",
                result.decision.value, result.risk_score, result.used_fallback,
            )
            return result
