"""Analysis API route."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from pairpilot.api.deps import get_pipeline
from pairpilot.api.schemas import AnalysisOutcomeOut, AnalysisRequest, AnalysisResponse
from pairpilot.models import AnalysisOutcome, MarketSnapshot, NewsContext

router = APIRouter()


def _outcome(outcome: AnalysisOutcome) -> AnalysisOutcomeOut:
    return AnalysisOutcomeOut(
        value=outcome.value,
        reasoning=outcome.reasoning,
        used_fallback=outcome.used_fallback,
        source=outcome.source,
    )


@router.post("")
async def run_analysis(
    body: AnalysisRequest,
    pipeline=Depends(get_pipeline),
) -> AnalysisResponse:
    """Run the four-stage pipeline over one market snapshot."""
    snapshot = MarketSnapshot(**body.snapshot.model_dump())
    news = NewsContext(
        headlines=tuple(body.news.headlines),
        summaries=tuple(body.news.summaries),
    )
    result = await pipeline.analyze(
        snapshot,
        news,
        force_fallback=body.force_fallback,
        symbol=body.symbol.upper() if body.symbol else None,
    )
    return AnalysisResponse(
        decision=result.decision.value,
        risk_score=result.risk_score,
        used_fallback=result.used_fallback,
        tapas=_outcome(result.tapas_outcome),
        sentiment=_outcome(result.sentiment_outcome),
        decision_detail=_outcome(result.decision_outcome),
        summary=_outcome(result.summary_outcome),
    )
