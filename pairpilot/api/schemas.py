"""Pydantic request and response schemas for the PairPilot API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


class MarketSnapshotIn(BaseModel):
    rsi: float = Field(ge=0, le=100)
    macd: float
    signal_line: float
    volume: float = Field(ge=0)
    price: float = Field(gt=0)


class NewsIn(BaseModel):
    headlines: list[str] = Field(default_factory=list)
    summaries: list[str] = Field(default_factory=list)


class AnalysisRequest(BaseModel):
    symbol: str | None = None
    snapshot: MarketSnapshotIn
    news: NewsIn = Field(default_factory=NewsIn)
    force_fallback: bool = False


class AnalysisOutcomeOut(BaseModel):
    value: str | float
    reasoning: str
    used_fallback: bool
    source: str


class AnalysisResponse(BaseModel):
    decision: str
    risk_score: float
    used_fallback: bool
    tapas: AnalysisOutcomeOut
    sentiment: AnalysisOutcomeOut
    decision_detail: AnalysisOutcomeOut
    summary: AnalysisOutcomeOut


# ---------------------------------------------------------------------------
# Trading
# ---------------------------------------------------------------------------


class ExecuteRequest(BaseModel):
    symbol: str
    decision: Literal["BUY", "SELL", "HOLD"]
    confidence: float = Field(ge=0, le=1)


class OrderOut(BaseModel):
    order_id: str
    symbol: str
    side: str
    order_type: str
    quantity: float
    status: str
    timestamp: str
    price: float | None = None
    stop_price: float | None = None
    executed_quantity: float = 0.0
    executed_price: float | None = None
    position_side: str | None = None
    reduce_only: bool = False


class ExecutionResponse(BaseModel):
    success: bool
    order_id: str | None = None
    order: OrderOut | None = None
    error_message: str | None = None
    protected: bool
    warnings: list[str] = Field(default_factory=list)
    protective_orders: list[OrderOut] = Field(default_factory=list)


class InitializeResponse(BaseModel):
    initialized: bool
    mode: str
    initial_balance: float | None = None


class ModeRequest(BaseModel):
    mode: Literal["spot", "derivatives"]


class LeverageRequest(BaseModel):
    symbol: str
    leverage: int = Field(ge=1, le=125)


class MarginTypeRequest(BaseModel):
    symbol: str
    margin_type: Literal["ISOLATED", "CROSSED"]


class BalanceOut(BaseModel):
    asset: str
    free: float
    locked: float
    total: float


class BalancesResponse(BaseModel):
    data: list[BalanceOut]


class PositionOut(BaseModel):
    symbol: str
    amount: float
    entry_price: float
    unrealized_pnl: float
    leverage: int
    position_side: str


class PositionsResponse(BaseModel):
    data: list[PositionOut]


class OrdersResponse(BaseModel):
    data: list[OrderOut]


class FundingRateResponse(BaseModel):
    symbol: str
    funding_rate: float
    mark_price: float
    index_price: float
    next_funding_time: str | None = None


# ---------------------------------------------------------------------------
# Model tracking
# ---------------------------------------------------------------------------


class MetricsOut(BaseModel):
    total_count: int
    success_rate: float
    average_latency_ms: float
    accuracy: float | None = None
    error_rate: float
    last_used: str | None = None


class HealthOut(BaseModel):
    status: str
    last_checked: str | None = None
    last_latency_ms: float
    last_error: str | None = None


class PredictionOut(BaseModel):
    id: str
    timestamp: str
    capability: str
    model: str
    input: str
    output: str | None = None
    latency_ms: float
    success: bool
    error: str | None = None


class OutcomeOut(BaseModel):
    prediction_id: str
    timestamp: str
    correct: bool
    actual_outcome: str
    notes: str | None = None


class CapabilityTrackingResponse(BaseModel):
    capability: str
    metrics: MetricsOut
    health: HealthOut
    recent_predictions: list[PredictionOut]


class TrackingResponse(BaseModel):
    predictions: list[PredictionOut]
    outcomes: list[OutcomeOut]
    metrics: dict[str, MetricsOut]
    health: dict[str, HealthOut]


class OutcomeRequest(BaseModel):
    prediction_id: str
    correct: bool
    actual_outcome: str
    notes: str | None = None


# ---------------------------------------------------------------------------
# Model test
# ---------------------------------------------------------------------------


class TableTestRequest(BaseModel):
    query: str = Field(min_length=1)
    table: dict[str, list[str]] = Field(min_length=1)
    model: str | None = None


class TextTestRequest(BaseModel):
    text: str = Field(min_length=1)
    model: str | None = None


class GenerationTestRequest(BaseModel):
    prompt: str = Field(min_length=1)
    model: str | None = None
    chat: bool = False


class ModelTestResponse(BaseModel):
    capability: str
    model: str | None = None
    success: bool
    result: str | float | None = None
    error: str | None = None
    health: HealthOut


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    results: dict[str, ModelTestResponse]
    errors: list[str] = Field(default_factory=list)
