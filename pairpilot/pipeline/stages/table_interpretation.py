"""Pipeline stage for indicator-table interpretation."""

from __future__ import annotations

import logging
from functools import partial

from pairpilot.analysis.cascade import Attempt, try_in_order
from pairpilot.analysis.fallbacks import DecisionThresholds, fallback_table_analysis
from pairpilot.models import AnalysisOutcome, Capability, Decision, MarketSnapshot
from pairpilot.pipeline.context import AnalysisContext
from pairpilot.pipeline.stage import outcome_from_cascade
from pairpilot.utils.constants import INDICATOR_LABELS, LOCAL_SOURCE, TABLE_QUERY

logger = logging.getLogger(__name__)


def project_snapshot(snapshot: MarketSnapshot) -> dict[str, list[str]]:
    """Row-oriented table of the snapshot, the shape table QA models expect."""
    return {
        "Indicator": list(INDICATOR_LABELS),
        "Value": [
            f"{snapshot.rsi:.2f}",
            f"{snapshot.macd:.4f}",
            f"{snapshot.signal_line:.4f}",
            f"{snapshot.volume:.0f}",
            f"{snapshot.price:.2f}",
        ],
    }


class TableInterpretationStage:
    """Ask the table QA models about the indicator table, then fall back locally."""

    def __init__(self, client, models: list[str], thresholds: DecisionThresholds) -> None:
        self._client = client
        self._models = models
        self._thresholds = thresholds

    @property
    def name(self) -> str:
        return "TableInterpretation"

    async def _remote(self, model: str, table: dict[str, list[str]]) -> tuple[str, str]:
        payload = {"inputs": {"query": TABLE_QUERY, "table": table}}
        answer = await self._client.invoke(Capability.TAPAS, payload, model)
        return answer, f"Table analysis by {model}: {answer}"

    async def _local(self, table: dict[str, list[str]]) -> tuple[str, str]:
        result = fallback_table_analysis(TABLE_QUERY, table, self._thresholds)
        return str(result.value), result.reasoning

    async def process(self, ctx: AnalysisContext) -> AnalysisContext:
        table = project_snapshot(ctx.snapshot)
        attempts = []
        if not ctx.force_fallback:
            attempts = [Attempt(model, partial(self._remote, model, table)) for model in self._models]
        attempts.append(Attempt(LOCAL_SOURCE, partial(self._local, table), remote=False))

        result = await try_in_order(attempts)
        answer, reasoning = result.value
        ctx.tapas_outcome = outcome_from_cascade(result, answer, reasoning)
        logger.debug("Table answer %r from %s", answer, result.attempt)
        return ctx

    def apply_default(self, ctx: AnalysisContext, reason: str) -> AnalysisContext:
        ctx.tapas_outcome = AnalysisOutcome(
            value=Decision.HOLD.value,
            reasoning=f"Table analysis unavailable ({reason}), defaulting to HOLD",
            used_fallback=True,
        )
        return ctx
