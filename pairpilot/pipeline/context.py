"""Mutable context object carrying intermediate state through pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass

from pairpilot.models import AnalysisOutcome, Decision, MarketSnapshot, NewsContext


@dataclass
class AnalysisContext:
    """Mutable bag of state passed through every analysis stage."""

    # Set by the pipeline runner
    snapshot: MarketSnapshot
    news: NewsContext
    request_id: str = ""
    force_fallback: bool = False

    # Set by TableInterpretationStage
    tapas_outcome: AnalysisOutcome | None = None

    # Set by SentimentStage
    sentiment_outcome: AnalysisOutcome | None = None

    # Set by RiskScoringStage
    risk_score: float | None = None

    # Set by DecisionStage
    decision: Decision | None = None
    decision_outcome: AnalysisOutcome | None = None

    # Set by SummaryStage
    summary_outcome: AnalysisOutcome | None = None

    @property
    def sentiment_score(self) -> float:
        if self.sentiment_outcome is None:
            return 0.5
        return float(self.sentiment_outcome.value)
