"""Order sizing and protective price calculation."""

from __future__ import annotations

import math
from dataclasses import dataclass

from pairpilot.models import OrderSide
from pairpilot.utils.constants import PROTECTIVE_LIMIT_OFFSET


@dataclass(frozen=True)
class OrderSize:
    notional: float
    quantity: float


@dataclass(frozen=True)
class ProtectivePrices:
    stop_loss_trigger: float
    stop_loss_limit: float
    take_profit_trigger: float
    take_profit_limit: float


def floor_to_cents(value: float) -> float:
    # absorb float error (0.29 * 100 == 28.999...) before flooring
    return math.floor(round(value * 100, 6)) / 100


def calculate_order_size(
    max_position_size: float,
    confidence: float,
    available_balance: float,
    price: float,
    leverage: int = 1,
) -> OrderSize:
    """Size an entry order.

    notional = floor2(min(max_position_size * confidence, available) * leverage)
    quantity = notional / price

    Raises:
        ValueError: If price <= 0 or leverage < 1.
    """
    if price <= 0:
        raise ValueError(f"price must be positive, got {price}")
    if leverage < 1:
        raise ValueError(f"leverage must be at least 1, got {leverage}")
    confidence = max(0.0, min(1.0, confidence))
    notional = floor_to_cents(
        min(max_position_size * confidence * leverage, available_balance * leverage)
    )
    return OrderSize(notional=notional, quantity=notional / price)


def protective_prices(
    entry_side: OrderSide,
    fill_price: float,
    stop_loss_percent: float,
    take_profit_percent: float,
) -> ProtectivePrices:
    """Stop-loss and take-profit prices for a position opened by *entry_side*.

    The closing legs trade the opposite side, so their limit prices sit 1%
    beyond the trigger in the direction that still fills: below for sells,
    above for buys.
    """
    if entry_side is OrderSide.BUY:
        sl = fill_price * (1 - stop_loss_percent / 100)
        tp = fill_price * (1 + take_profit_percent / 100)
        factor = 1 - PROTECTIVE_LIMIT_OFFSET
    else:
        sl = fill_price * (1 + stop_loss_percent / 100)
        tp = fill_price * (1 - take_profit_percent / 100)
        factor = 1 + PROTECTIVE_LIMIT_OFFSET
    return ProtectivePrices(
        stop_loss_trigger=sl,
        stop_loss_limit=sl * factor,
        take_profit_trigger=tp,
        take_profit_limit=tp * factor,
    )
