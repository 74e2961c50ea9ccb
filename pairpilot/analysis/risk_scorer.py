"""Scalar trade-risk score from technical indicators and news sentiment."""

from __future__ import annotations

from dataclasses import dataclass

from pairpilot.models import MarketSnapshot


@dataclass(frozen=True)
class RiskWeights:
    base: float = 0.5
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    rsi_step: float = 0.1
    macd_step: float = 0.05
    volume_threshold: float = 1_000_000.0
    volume_step: float = 0.05
    sentiment_weight: float = 0.2

    @classmethod
    def from_config(cls, config) -> "RiskWeights":
        return cls(
            base=config.risk_base,
            rsi_overbought=config.rsi_overbought,
            rsi_oversold=config.rsi_oversold,
            rsi_step=config.risk_rsi_step,
            macd_step=config.risk_macd_step,
            volume_threshold=config.risk_volume_threshold,
            volume_step=config.risk_volume_step,
            sentiment_weight=config.risk_sentiment_weight,
        )


def calculate_risk_score(
    snapshot: MarketSnapshot,
    sentiment: float,
    weights: RiskWeights = RiskWeights(),
) -> float:
    """Return a risk score clamped to [0, 1].

    Overbought RSI, MACD at or below its signal line, heavy volume and
    positive sentiment all push the score up.
    """
    score = weights.base

    if snapshot.rsi > weights.rsi_overbought:
        score += weights.rsi_step
    elif snapshot.rsi < weights.rsi_oversold:
        score -= weights.rsi_step

    if snapshot.macd > snapshot.signal_line:
        score -= weights.macd_step
    else:
        score += weights.macd_step

    if snapshot.volume > weights.volume_threshold:
        score += weights.volume_step

    score += (sentiment - 0.5) * weights.sentiment_weight

    return max(0.0, min(1.0, score))
