"""Core data models for PairPilot.

All data models are Python dataclasses, serving as the contract between components.
Trading policy types live in ``pairpilot.execution.policy`` because they are
validated pydantic models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pairpilot.utils.constants import LOCAL_SOURCE

__all__ = [
    # Enums
    "Decision",
    "Capability",
    "HealthStatus",
    "OrderSide",
    "PositionSide",
    # Analysis inputs
    "MarketSnapshot",
    "NewsContext",
    # Analysis outputs
    "AnalysisOutcome",
    "PipelineResult",
    # Tracking
    "ConnectionHealth",
    "PredictionRecord",
    "OutcomeRecord",
    "CapabilityMetrics",
    # Exchange / execution
    "Balance",
    "Position",
    "FundingRate",
    "OrderRecord",
    "ExecutionResult",
]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Decision(Enum):
    """Trading recommendation produced by the pipeline."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class Capability(Enum):
    """Remote analysis capabilities, one per pipeline stage."""

    TAPAS = "tapas"
    DISTILBERT = "distilbert"
    DECISION = "decision"
    BART = "bart"


class HealthStatus(Enum):
    CONNECTED = "connected"
    DEGRADED = "degraded"
    DISCONNECTED = "disconnected"
    UNKNOWN = "unknown"


class OrderSide(Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def opposite(self) -> "OrderSide":
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY


class PositionSide(Enum):
    """Position side tag sent with derivatives orders."""

    LONG = "LONG"
    SHORT = "SHORT"
    BOTH = "BOTH"


# ---------------------------------------------------------------------------
# Analysis inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MarketSnapshot:
    """Technical indicator state for one symbol at one instant."""

    rsi: float
    macd: float
    signal_line: float
    volume: float
    price: float


@dataclass(frozen=True)
class NewsContext:
    headlines: tuple[str, ...] = ()
    summaries: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        """Headlines and summaries concatenated for sentiment scoring."""
        return " ".join(self.headlines) + " " + " ".join(self.summaries)


# ---------------------------------------------------------------------------
# Analysis outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnalysisOutcome:
    """Result of one pipeline stage.

    ``source`` is the model identifier that produced ``value``, or ``"local"``
    when a heuristic did.
    """

    value: str | float
    reasoning: str
    used_fallback: bool
    source: str = LOCAL_SOURCE


@dataclass(frozen=True)
class PipelineResult:
    decision: Decision
    risk_score: float
    tapas_outcome: AnalysisOutcome
    sentiment_outcome: AnalysisOutcome
    decision_outcome: AnalysisOutcome
    summary_outcome: AnalysisOutcome

    @property
    def used_fallback(self) -> bool:
        return any(
            outcome.used_fallback
            for outcome in (
                self.tapas_outcome,
                self.sentiment_outcome,
                self.decision_outcome,
                self.summary_outcome,
            )
        )


# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConnectionHealth:
    status: HealthStatus = HealthStatus.UNKNOWN
    last_checked: datetime | None = None
    last_latency_ms: float = 0.0
    last_error: str | None = None


@dataclass(frozen=True)
class PredictionRecord:
    """One inference attempt, successful or not."""

    id: str
    timestamp: datetime
    capability: Capability
    model: str
    input: str
    output: str | None
    latency_ms: float
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class OutcomeRecord:
    """Human-graded correctness of an earlier prediction."""

    prediction_id: str
    timestamp: datetime
    correct: bool
    actual_outcome: str
    notes: str | None = None


@dataclass
class CapabilityMetrics:
    total_count: int = 0
    success_rate: float = 0.0
    average_latency_ms: float = 0.0
    accuracy: float | None = None
    error_rate: float = 0.0
    last_used: datetime | None = None


# ---------------------------------------------------------------------------
# Exchange / execution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Balance:
    asset: str
    free: float
    locked: float = 0.0

    @property
    def total(self) -> float:
        return self.free + self.locked


@dataclass(frozen=True)
class Position:
    """Open derivatives position. ``amount`` is signed: negative means short."""

    symbol: str
    amount: float
    entry_price: float
    unrealized_pnl: float = 0.0
    leverage: int = 1
    position_side: PositionSide = PositionSide.BOTH

    @property
    def direction(self) -> PositionSide:
        if self.position_side is not PositionSide.BOTH:
            return self.position_side
        return PositionSide.LONG if self.amount > 0 else PositionSide.SHORT


@dataclass(frozen=True)
class FundingRate:
    symbol: str
    funding_rate: float
    mark_price: float
    index_price: float
    next_funding_time: datetime | None = None


@dataclass(frozen=True)
class OrderRecord:
    order_id: str
    symbol: str
    side: OrderSide
    order_type: str
    quantity: float
    status: str
    timestamp: datetime
    price: float | None = None
    stop_price: float | None = None
    executed_quantity: float = 0.0
    executed_price: float | None = None
    position_side: PositionSide | None = None
    reduce_only: bool = False


@dataclass
class ExecutionResult:
    """Outcome of one execution call.

    ``protected`` is False when the entry filled but a stop-loss or
    take-profit leg could not be placed; ``warnings`` says which.
    """

    success: bool
    order_id: str | None = None
    order: OrderRecord | None = None
    error_message: str | None = None
    protected: bool = True
    warnings: list[str] = field(default_factory=list)
    protective_orders: list[OrderRecord] = field(default_factory=list)

    @classmethod
    def rejected(cls, message: str) -> "ExecutionResult":
        return cls(success=False, error_message=message, protected=False)
