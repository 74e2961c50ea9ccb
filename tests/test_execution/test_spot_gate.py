"""Tests for the spot execution gate."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from pairpilot.exchange.base import ExchangeError
from pairpilot.execution.gate import SpotExecutionGate
from pairpilot.execution.policy import parse_policy
from pairpilot.execution.risk_gate import RISK_REJECTION, RiskGate
from pairpilot.models import Balance, Decision, OrderRecord, OrderSide


def _order(order_id, side, order_type="MARKET", qty=0.0016, price=50000.0):
    return OrderRecord(
        order_id=order_id,
        symbol="BTCUSDT",
        side=side,
        order_type=order_type,
        quantity=qty,
        status="FILLED" if order_type == "MARKET" else "NEW",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        executed_quantity=qty if order_type == "MARKET" else 0.0,
        executed_price=price if order_type == "MARKET" else None,
    )


@pytest.fixture
def exchange():
    mock = AsyncMock()
    mock.balances.return_value = [Balance(asset="USDT", free=1000.0)]
    mock.current_price.return_value = 50000.0
    mock.place_market_order.return_value = _order("1", OrderSide.BUY)
    mock.place_stop_loss_order.return_value = _order("2", OrderSide.SELL, "STOP_LOSS_LIMIT")
    mock.place_take_profit_order.return_value = _order("3", OrderSide.SELL, "TAKE_PROFIT_LIMIT")
    return mock


def _gate(exchange, ready=True, risk_gate=None, **policy_fields):
    fields = {"enabled": True, "test_mode": False, **policy_fields}
    policy = parse_policy(fields)
    return SpotExecutionGate(
        exchange,
        policy_source=lambda: policy,
        risk_gate=risk_gate or RiskGate(),
        is_ready=lambda: ready,
    )


class TestPreconditions:
    async def test_disabled(self, exchange):
        result = await _gate(exchange, enabled=False).execute("BTCUSDT", "BUY", 0.8)
        assert result.success is False
        assert result.error_message == "Trading is disabled in configuration"
        exchange.balances.assert_not_awaited()

    async def test_hold_never_touches_exchange(self, exchange):
        result = await _gate(exchange).execute("BTCUSDT", Decision.HOLD, 0.9)
        assert result.success is False
        assert result.error_message == "Action is HOLD, no trade executed"
        assert exchange.method_calls == []

    async def test_symbol_not_allowed(self, exchange):
        result = await _gate(exchange).execute("xrpusdt", "BUY", 0.5)
        assert result.error_message == "Symbol XRPUSDT is not in the allowed symbols list"

    async def test_lowercase_symbol_accepted(self, exchange):
        result = await _gate(exchange).execute("btcusdt", "BUY", 0.8)
        assert result.success is True
        assert exchange.place_market_order.await_args.args[0] == "BTCUSDT"

    async def test_test_mode_simulates(self, exchange):
        result = await _gate(exchange, test_mode=True, ready=False).execute("BTCUSDT", "SELL", 0.8)
        assert result.success is True
        assert result.order_id.startswith("test_")
        assert result.order.side is OrderSide.SELL
        assert result.order.status == "FILLED"
        assert exchange.method_calls == []

    async def test_not_initialized(self, exchange):
        result = await _gate(exchange, ready=False).execute("BTCUSDT", "BUY", 0.8)
        assert result.error_message == "Trading service not initialized"
        exchange.balances.assert_not_awaited()


class TestLiveExecution:
    async def test_entry_with_both_protective_legs(self, exchange):
        result = await _gate(exchange).execute("BTCUSDT", "BUY", 0.8)

        assert result.success is True
        assert result.order_id == "1"
        assert result.protected is True
        assert [o.order_id for o in result.protective_orders] == ["2", "3"]

        symbol, side, qty = exchange.place_market_order.await_args.args
        assert (symbol, side) == ("BTCUSDT", OrderSide.BUY)
        assert qty == pytest.approx(80.0 / 50000.0)

        sl_args = exchange.place_stop_loss_order.await_args.args
        assert sl_args[1] is OrderSide.SELL
        assert sl_args[3] == pytest.approx(49000.0)
        assert sl_args[4] == pytest.approx(48510.0)
        tp_args = exchange.place_take_profit_order.await_args.args
        assert tp_args[3] == pytest.approx(52000.0)
        assert tp_args[4] == pytest.approx(51480.0)

    async def test_sell_entry_places_buy_legs(self, exchange):
        exchange.place_market_order.return_value = _order("9", OrderSide.SELL)
        await _gate(exchange).execute("BTCUSDT", "SELL", 1.0)
        assert exchange.place_stop_loss_order.await_args.args[1] is OrderSide.BUY
        assert exchange.place_stop_loss_order.await_args.args[3] == pytest.approx(51000.0)

    async def test_insufficient_balance(self, exchange):
        exchange.balances.return_value = [Balance(asset="BTC", free=1.0)]
        result = await _gate(exchange).execute("BTCUSDT", "BUY", 0.8)
        assert result.error_message == "Insufficient USDT balance"
        exchange.place_market_order.assert_not_awaited()

    async def test_zero_free_balance(self, exchange):
        exchange.balances.return_value = [Balance(asset="USDT", free=0.0, locked=50.0)]
        result = await _gate(exchange).execute("BTCUSDT", "BUY", 0.8)
        assert result.error_message == "Insufficient USDT balance"

    async def test_zero_confidence_sizes_to_nothing(self, exchange):
        result = await _gate(exchange).execute("BTCUSDT", "BUY", 0.0)
        assert result.error_message == "Calculated order size is zero"
        exchange.place_market_order.assert_not_awaited()

    async def test_risk_rejection(self, exchange):
        risk = RiskGate()
        risk.record_realized_pnl(-500.0)
        result = await _gate(exchange, risk_gate=risk).execute("BTCUSDT", "BUY", 0.8)
        assert result.success is False
        assert result.error_message.startswith(RISK_REJECTION)
        exchange.place_market_order.assert_not_awaited()

    async def test_entry_failure(self, exchange):
        exchange.place_market_order.side_effect = ExchangeError("Filter failure: LOT_SIZE", 400, -1013)
        result = await _gate(exchange).execute("BTCUSDT", "BUY", 0.8)
        assert result.success is False
        assert result.error_message == "Exchange error: Filter failure: LOT_SIZE"
        exchange.place_stop_loss_order.assert_not_awaited()

    async def test_unexpected_error_is_contained(self, exchange):
        exchange.current_price.side_effect = RuntimeError("boom")
        result = await _gate(exchange).execute("BTCUSDT", "BUY", 0.8)
        assert result.success is False
        assert result.error_message == "Execution failed: boom"

    async def test_failed_leg_leaves_entry_unprotected(self, exchange):
        exchange.place_take_profit_order.side_effect = ExchangeError("Stop price would trigger immediately")
        result = await _gate(exchange).execute("BTCUSDT", "BUY", 0.8)

        assert result.success is True
        assert result.order_id == "1"
        assert result.protected is False
        assert [o.order_id for o in result.protective_orders] == ["2"]
        assert result.warnings == ["Take-profit order failed: Stop price would trigger immediately"]

    async def test_fill_price_falls_back_to_ticker(self, exchange):
        exchange.place_market_order.return_value = _order("1", OrderSide.BUY, price=None, qty=0.0)
        exchange.current_price.return_value = 100.0
        await _gate(exchange).execute("BTCUSDT", "BUY", 1.0)
        symbol, side, qty, trigger, limit = exchange.place_stop_loss_order.await_args.args
        assert qty == pytest.approx(1.0)
        assert trigger == pytest.approx(98.0)


class TestArgumentValidation:
    async def test_lowercase_action_is_accepted(self, exchange):
        result = await _gate(exchange).execute("BTCUSDT", "buy", 0.5)
        assert result.success is True
        assert exchange.place_market_order.await_args.args[1] is OrderSide.BUY

    @pytest.mark.parametrize("action", ["SHORT", "", None, 3])
    async def test_unknown_action_rejected(self, exchange, action):
        result = await _gate(exchange).execute("BTCUSDT", action, 0.5)
        assert result.success is False
        assert result.error_message.startswith("Invalid action")
        assert exchange.method_calls == []

    @pytest.mark.parametrize("symbol", ["", "   ", None])
    async def test_blank_symbol_rejected(self, exchange, symbol):
        result = await _gate(exchange).execute(symbol, "BUY", 0.5)
        assert result.error_message.startswith("Invalid symbol")
        assert exchange.method_calls == []

    @pytest.mark.parametrize("confidence", [float("nan"), float("inf"), "high", None])
    async def test_unusable_confidence_rejected(self, exchange, confidence):
        result = await _gate(exchange).execute("BTCUSDT", "BUY", confidence)
        assert result.success is False
        assert result.error_message.startswith("Invalid confidence")
        assert exchange.method_calls == []


class TestSymbolLock:
    async def test_same_symbol_executions_do_not_interleave(self, exchange):
        events = []

        async def balances():
            events.append("balances")
            await asyncio.sleep(0)
            return [Balance(asset="USDT", free=1000.0)]

        async def place_market_order(symbol, side, quantity, **kwargs):
            events.append("entry")
            await asyncio.sleep(0)
            return _order(str(len(events)), side)

        exchange.balances.side_effect = balances
        exchange.place_market_order.side_effect = place_market_order
        gate = _gate(exchange)

        first, second = await asyncio.gather(
            gate.execute("BTCUSDT", "BUY", 0.5),
            gate.execute("btcusdt", "BUY", 0.5),
        )

        assert first.success is True
        assert second.success is True
        assert events == ["balances", "entry", "balances", "entry"]
