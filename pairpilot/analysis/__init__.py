"""Pure analysis building blocks: heuristics, risk scoring, cascades."""

from pairpilot.analysis.cascade import Attempt, CascadeResult, try_in_order
from pairpilot.analysis.fallbacks import DecisionThresholds, HeuristicResult
from pairpilot.analysis.risk_scorer import RiskWeights, calculate_risk_score

__all__ = [
    "Attempt",
    "CascadeResult",
    "DecisionThresholds",
    "HeuristicResult",
    "RiskWeights",
    "calculate_risk_score",
    "try_in_order",
]
