"""Trading session: owns the exchange clients, the active policy and the gates."""

from __future__ import annotations

import logging
from typing import Any

from pairpilot.exchange.futures import BinanceFuturesClient
from pairpilot.exchange.spot import BinanceSpotClient
from pairpilot.execution.gate import (
    DerivativesExecutionGate,
    Policy,
    SpotExecutionGate,
    SymbolLocks,
)
from pairpilot.execution.policy import (
    DerivativesPolicy,
    PolicyValidationError,
    default_policy,
    merge_policy,
)
from pairpilot.execution.risk_gate import RiskGate
from pairpilot.models import (
    Balance,
    Decision,
    ExecutionResult,
    FundingRate,
    OrderRecord,
    Position,
)

logger = logging.getLogger(__name__)


class TradingSession:
    """Explicitly constructed replacement for a process-wide trading manager.

    Holds one spot and one futures client; ``execute`` routes to the gate
    matching the current policy mode. The policy is immutable and replaced
    as a whole by ``update_policy``.
    """

    def __init__(
        self,
        spot_client: BinanceSpotClient,
        futures_client: BinanceFuturesClient,
        policy: Policy | None = None,
        quote_asset: str = "USDT",
    ) -> None:
        self._spot = spot_client
        self._futures = futures_client
        self._policy: Policy = policy or default_policy()
        self._quote_asset = quote_asset
        self._initialized = False
        self.risk_gate = RiskGate()

        locks = SymbolLocks()
        gate_kwargs = dict(
            policy_source=lambda: self._policy,
            risk_gate=self.risk_gate,
            is_ready=lambda: self._initialized,
            locks=locks,
            quote_asset=quote_asset,
        )
        self._spot_gate = SpotExecutionGate(spot_client, **gate_kwargs)
        self._derivatives_gate = DerivativesExecutionGate(futures_client, **gate_kwargs)

    @classmethod
    def from_config(cls, config) -> TradingSession:
        client_kwargs = dict(
            api_key=config.binance_api_key,
            api_secret=config.binance_api_secret,
            testnet=config.binance_testnet,
            timeout=config.exchange_timeout_seconds,
            recv_window=config.recv_window_ms,
        )
        return cls(
            BinanceSpotClient(**client_kwargs),
            BinanceFuturesClient(**client_kwargs),
            quote_asset=config.quote_asset,
        )

    # -- state --------------------------------------------------------------

    @property
    def policy(self) -> Policy:
        return self._policy

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def is_derivatives(self) -> bool:
        return isinstance(self._policy, DerivativesPolicy)

    @property
    def exchange(self) -> BinanceSpotClient | BinanceFuturesClient:
        return self._futures if self.is_derivatives else self._spot

    def _require_derivatives(self) -> BinanceFuturesClient:
        if not self.is_derivatives:
            raise PolicyValidationError("Operation requires derivatives mode")
        return self._futures

    # -- lifecycle ----------------------------------------------------------

    async def initialize(self) -> None:
        """Check the exchange connection, capture the initial balance and sync position mode.

        Raises:
            ExchangeError: If the exchange cannot be reached or rejects the keys.
        """
        exchange = self.exchange
        await exchange.sync_time()
        balances = await exchange.balances()
        quote = next((b for b in balances if b.asset == self._quote_asset), None)
        self.risk_gate.set_initial_balance(quote.total if quote else 0.0)
        if isinstance(self._policy, DerivativesPolicy):
            await self._futures.change_position_mode(
                self._policy.derivatives_parameters.hedge_mode
            )
        self._initialized = True
        logger.info("Trading session initialized in %s mode", self._policy.mode)

    async def close(self) -> None:
        await self._spot.close()
        await self._futures.close()

    # -- policy -------------------------------------------------------------

    def update_policy(self, partial: dict[str, Any]) -> Policy:
        """Merge *partial* into the current policy and swap it in.

        Raises:
            PolicyValidationError: If the merged policy is invalid; the
                current policy is left untouched.
        """
        new_policy = merge_policy(self._policy, partial)
        mode_changed = new_policy.mode != self._policy.mode
        self._policy = new_policy
        if mode_changed:
            # the other account's balance and position mode are unknown
            self._initialized = False
        logger.info(
            "Policy updated: mode=%s enabled=%s test_mode=%s",
            new_policy.mode, new_policy.enabled, new_policy.test_mode,
        )
        return new_policy

    def switch_mode(self, mode: str) -> Policy:
        return self.update_policy({"mode": mode})

    def record_realized_pnl(self, amount: float) -> None:
        self.risk_gate.record_realized_pnl(amount)

    # -- execution ----------------------------------------------------------

    async def execute(
        self, symbol: str, decision: Decision | str, confidence: float
    ) -> ExecutionResult:
        gate = self._derivatives_gate if self.is_derivatives else self._spot_gate
        return await gate.execute(symbol, decision, confidence)

    # -- pass-throughs ------------------------------------------------------

    async def balances(self) -> list[Balance]:
        return await self.exchange.balances()

    async def positions(self) -> list[Position]:
        return await self._require_derivatives().positions()

    async def open_orders(self, symbol: str | None = None) -> list[OrderRecord]:
        return await self.exchange.open_orders(symbol.upper() if symbol else None)

    async def cancel_all_orders(self, symbol: str) -> None:
        await self.exchange.cancel_all_orders(symbol.upper())
        logger.info("Cancelled all open orders on %s", symbol.upper())

    async def funding_rate(self, symbol: str) -> FundingRate:
        return await self._futures.funding_rate(symbol.upper())

    async def change_leverage(self, symbol: str, leverage: int) -> int:
        return await self._require_derivatives().change_leverage(symbol.upper(), leverage)

    async def change_margin_type(self, symbol: str, margin_type: str) -> None:
        await self._require_derivatives().change_margin_type(symbol.upper(), margin_type)
