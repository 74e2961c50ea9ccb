"""Risk-gated order execution for spot and derivatives accounts.

``ExecutionGate.execute`` checks the policy preconditions in a fixed order,
then, under a per-symbol lock, runs the risk gate, sizes the order, places
the market entry and finally the best-effort stop-loss and take-profit legs.
It never raises: every failure comes back as an ``ExecutionResult``.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pairpilot.exchange.base import ExchangeClient, ExchangeError
from pairpilot.execution.policy import DerivativesPolicy, SpotPolicy
from pairpilot.execution.position_sizer import calculate_order_size, protective_prices
from pairpilot.execution.risk_gate import RiskGate
from pairpilot.models import (
    Decision,
    ExecutionResult,
    OrderRecord,
    OrderSide,
    Position,
    PositionSide,
)
from pairpilot.utils.constants import UTC
from pairpilot.utils.log_context import log_context

logger = logging.getLogger(__name__)

Policy = SpotPolicy | DerivativesPolicy


class SymbolLocks:
    """One asyncio.Lock per symbol, created on first use."""

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def __getitem__(self, symbol: str) -> asyncio.Lock:
        return self._locks[symbol]


class ExecutionGate:
    """Shared precondition checks and order flow.

    Subclasses supply the mode-specific hooks: leverage, open positions,
    pre-entry preparation and order tagging.
    """

    def __init__(
        self,
        exchange: ExchangeClient,
        policy_source: Callable[[], Policy],
        risk_gate: RiskGate,
        is_ready: Callable[[], bool] = lambda: True,
        locks: SymbolLocks | None = None,
        quote_asset: str = "USDT",
    ) -> None:
        self._exchange = exchange
        self._policy_source = policy_source
        self._risk_gate = risk_gate
        self._is_ready = is_ready
        self._locks = locks or SymbolLocks()
        self._quote_asset = quote_asset

    # -- hooks ----------------------------------------------------------------

    def _leverage(self, policy: Policy) -> int:
        return 1

    async def _load_positions(self, policy: Policy) -> list[Position] | None:
        return None

    def _max_open_positions(self, policy: Policy) -> int | None:
        return None

    async def _prepare(
        self,
        policy: Policy,
        symbol: str,
        side: OrderSide,
        leverage: int,
        positions: list[Position] | None,
    ) -> None:
        return None

    def _entry_kwargs(self, policy: Policy, side: OrderSide) -> dict[str, Any]:
        return {}

    def _protective_kwargs(self, policy: Policy, entry_side: OrderSide) -> dict[str, Any]:
        return {}

    # -- flow -------------------------------------------------------------------

    @staticmethod
    def _simulated_order(symbol: str, side: OrderSide) -> OrderRecord:
        now = datetime.now(UTC)
        return OrderRecord(
            order_id=f"test_{int(now.timestamp() * 1000)}",
            symbol=symbol,
            side=side,
            order_type="MARKET",
            quantity=0.0,
            status="FILLED",
            timestamp=now,
            executed_quantity=0.0,
        )

    async def execute(
        self, symbol: str, decision: Decision | str, confidence: float
    ) -> ExecutionResult:
        """Place a trade for *decision* on *symbol*, sized by *confidence* in [0, 1].

        *decision* may be a ``Decision`` or its name in any case. Malformed
        arguments are rejected before any policy check.
        """
        if not isinstance(symbol, str) or not symbol.strip():
            return ExecutionResult.rejected(f"Invalid symbol: {symbol!r}")
        symbol = symbol.strip().upper()

        if not isinstance(decision, Decision):
            try:
                decision = Decision(str(decision).strip().upper())
            except ValueError:
                return ExecutionResult.rejected(f"Invalid action: {decision!r}")

        try:
            confidence = float(confidence)
        except (TypeError, ValueError):
            return ExecutionResult.rejected(f"Invalid confidence: {confidence!r}")
        if not math.isfinite(confidence):
            return ExecutionResult.rejected(f"Invalid confidence: {confidence!r}")

        policy = self._policy_source()
        if not policy.enabled:
            return ExecutionResult.rejected("Trading is disabled in configuration")
        if decision is Decision.HOLD:
            return ExecutionResult.rejected("Action is HOLD, no trade executed")
        if symbol not in policy.allowed_symbols:
            return ExecutionResult.rejected(f"Symbol {symbol} is not in the allowed symbols list")

        side = OrderSide(decision.value)
        if policy.test_mode:
            order = self._simulated_order(symbol, side)
            logger.info("Test mode: simulated %s %s as %s", side.value, symbol, order.order_id)
            return ExecutionResult(success=True, order_id=order.order_id, order=order)

        if not self._is_ready():
            return ExecutionResult.rejected("Trading service not initialized")

        async with log_context(symbol=symbol), self._locks[symbol]:
            try:
                return await self._execute_live(policy, symbol, side, confidence)
            except ExchangeError as exc:
                logger.error("Exchange error executing %s %s: %s", side.value, symbol, exc)
                return ExecutionResult.rejected(f"Exchange error: {exc}")
            except Exception as exc:
                logger.exception("Unexpected error executing %s %s", side.value, symbol)
                return ExecutionResult.rejected(f"Execution failed: {exc}")

    async def _execute_live(
        self, policy: Policy, symbol: str, side: OrderSide, confidence: float
    ) -> ExecutionResult:
        params = policy.risk_parameters
        balances = await self._exchange.balances()
        quote = next((b for b in balances if b.asset == self._quote_asset), None)
        positions = await self._load_positions(policy)

        rejection = self._risk_gate.check(
            params,
            quote.total if quote else None,
            len(positions) if positions is not None else None,
            self._max_open_positions(policy),
        )
        if rejection:
            return ExecutionResult.rejected(rejection)

        if quote is None or quote.free <= 0:
            return ExecutionResult.rejected(f"Insufficient {self._quote_asset} balance")

        price = await self._exchange.current_price(symbol)
        leverage = self._leverage(policy)
        size = calculate_order_size(params.max_position_size, confidence, quote.free, price, leverage)
        if size.quantity <= 0:
            return ExecutionResult.rejected("Calculated order size is zero")

        await self._prepare(policy, symbol, side, leverage, positions)

        entry = await self._exchange.place_market_order(
            symbol, side, size.quantity, **self._entry_kwargs(policy, side)
        )
        logger.info(
            "Entry %s %s qty=%.8f notional=%.2f order=%s",
            side.value, symbol, size.quantity, size.notional, entry.order_id,
        )
        result = ExecutionResult(success=True, order_id=entry.order_id, order=entry)

        fill_price = entry.executed_price or price
        quantity = entry.executed_quantity or size.quantity
        await self._place_protection(policy, symbol, side, fill_price, quantity, result)
        return result

    async def _place_protection(
        self,
        policy: Policy,
        symbol: str,
        entry_side: OrderSide,
        fill_price: float,
        quantity: float,
        result: ExecutionResult,
    ) -> None:
        """Place stop-loss and take-profit legs; failures only annotate *result*."""
        params = policy.risk_parameters
        prices = protective_prices(
            entry_side, fill_price, params.stop_loss_percent, params.take_profit_percent
        )
        kwargs = self._protective_kwargs(policy, entry_side)
        legs = (
            ("Stop-loss", self._exchange.place_stop_loss_order,
             prices.stop_loss_trigger, prices.stop_loss_limit),
            ("Take-profit", self._exchange.place_take_profit_order,
             prices.take_profit_trigger, prices.take_profit_limit),
        )
        for label, place, trigger, limit in legs:
            try:
                order = await place(symbol, entry_side.opposite, quantity, trigger, limit, **kwargs)
            except ExchangeError as exc:
                result.protected = False
                result.warnings.append(f"{label} order failed: {exc}")
                logger.warning("%s leg for %s failed, entry left open: %s", label, symbol, exc)
                continue
            result.protective_orders.append(order)


class SpotExecutionGate(ExecutionGate):
    """Spot account: no leverage, no positions."""


class DerivativesExecutionGate(ExecutionGate):
    """Futures account: leverage, margin type, position limits and side tagging."""

    @staticmethod
    def _params(policy: Policy):
        if not isinstance(policy, DerivativesPolicy):
            raise TypeError("derivatives gate requires a derivatives policy")
        return policy.derivatives_parameters

    def _leverage(self, policy: Policy) -> int:
        return self._params(policy).default_leverage

    async def _load_positions(self, policy: Policy) -> list[Position] | None:
        return await self._exchange.positions()

    def _max_open_positions(self, policy: Policy) -> int | None:
        return self._params(policy).max_open_positions

    def _position_side(self, policy: Policy, entry_side: OrderSide) -> PositionSide:
        if not self._params(policy).hedge_mode:
            return PositionSide.BOTH
        return PositionSide.LONG if entry_side is OrderSide.BUY else PositionSide.SHORT

    async def _prepare(
        self,
        policy: Policy,
        symbol: str,
        side: OrderSide,
        leverage: int,
        positions: list[Position] | None,
    ) -> None:
        dp = self._params(policy)
        await self._exchange.change_margin_type(symbol, dp.margin_type)
        await self._exchange.change_leverage(symbol, leverage)

        if dp.hedge_mode:
            return
        opposing = PositionSide.SHORT if side is OrderSide.BUY else PositionSide.LONG
        for position in positions or []:
            if position.symbol == symbol and position.direction is opposing:
                logger.info("Closing opposing %s position on %s first", opposing.value, symbol)
                await self._exchange.place_market_order(
                    symbol,
                    side,
                    abs(position.amount),
                    position_side=PositionSide.BOTH,
                    reduce_only=True,
                )

    def _entry_kwargs(self, policy: Policy, side: OrderSide) -> dict[str, Any]:
        return {"position_side": self._position_side(policy, side)}

    def _protective_kwargs(self, policy: Policy, entry_side: OrderSide) -> dict[str, Any]:
        return {"position_side": self._position_side(policy, entry_side), "reduce_only": True}
