from pairpilot.pipeline.stages.decision import DecisionStage
from pairpilot.pipeline.stages.risk_scoring import RiskScoringStage
from pairpilot.pipeline.stages.sentiment import SentimentStage
from pairpilot.pipeline.stages.summary import SummaryStage
from pairpilot.pipeline.stages.table_interpretation import TableInterpretationStage

__all__ = [
    "DecisionStage",
    "RiskScoringStage",
    "SentimentStage",
    "SummaryStage",
    "TableInterpretationStage",
]
