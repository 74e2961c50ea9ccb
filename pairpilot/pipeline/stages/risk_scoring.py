"""Pipeline stage that computes the risk score once sentiment is known."""

from __future__ import annotations

from pairpilot.analysis.risk_scorer import RiskWeights, calculate_risk_score
from pairpilot.pipeline.context import AnalysisContext


class RiskScoringStage:
    def __init__(self, weights: RiskWeights) -> None:
        self._weights = weights

    @property
    def name(self) -> str:
        return "RiskScoring"

    async def process(self, ctx: AnalysisContext) -> AnalysisContext:
        ctx.risk_score = calculate_risk_score(ctx.snapshot, ctx.sentiment_score, self._weights)
        return ctx

    def apply_default(self, ctx: AnalysisContext, reason: str) -> AnalysisContext:
        ctx.risk_score = self._weights.base
        return ctx
