"""Analysis pipeline: composable stages from indicators to a trading decision."""

from pairpilot.analysis.fallbacks import DecisionThresholds
from pairpilot.analysis.risk_scorer import RiskWeights
from pairpilot.pipeline.context import AnalysisContext
from pairpilot.pipeline.stage import AnalysisPipeline, PipelineStage
from pairpilot.pipeline.stages import (
    DecisionStage,
    RiskScoringStage,
    SentimentStage,
    SummaryStage,
    TableInterpretationStage,
)


def build_pipeline(client, config) -> AnalysisPipeline:
    """Wire the standard stage order from *config*."""
    thresholds = DecisionThresholds.from_config(config)
    return AnalysisPipeline([
        TableInterpretationStage(client, config.table_model_list, thresholds),
        SentimentStage(client, config.sentiment_model_list),
        RiskScoringStage(RiskWeights.from_config(config)),
        DecisionStage(client, config.decision_model_list, thresholds),
        SummaryStage(client, config.summary_model_list, thresholds),
    ])


__all__ = ["AnalysisContext", "AnalysisPipeline", "PipelineStage", "build_pipeline"]
