"""Risk-gated order execution."""

from pairpilot.execution.gate import DerivativesExecutionGate, ExecutionGate, SpotExecutionGate
from pairpilot.execution.policy import (
    DerivativesParameters,
    DerivativesPolicy,
    PolicyValidationError,
    RiskParameters,
    SpotPolicy,
    TradingPolicy,
    default_policy,
    merge_policy,
    parse_policy,
)
from pairpilot.execution.risk_gate import RISK_REJECTION, RiskGate
from pairpilot.execution.session import TradingSession

__all__ = [
    "DerivativesExecutionGate",
    "DerivativesParameters",
    "DerivativesPolicy",
    "ExecutionGate",
    "PolicyValidationError",
    "RISK_REJECTION",
    "RiskGate",
    "RiskParameters",
    "SpotExecutionGate",
    "SpotPolicy",
    "TradingPolicy",
    "TradingSession",
    "default_policy",
    "merge_policy",
    "parse_policy",
]
