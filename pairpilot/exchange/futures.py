"""Binance USD-M futures REST client."""

from __future__ import annotations

import logging
from typing import Any

from pairpilot.exchange.base import (
    BinanceRestClient,
    ExchangeError,
    _float,
    format_decimal,
    from_millis,
)
from pairpilot.models import Balance, FundingRate, OrderRecord, OrderSide, Position, PositionSide

logger = logging.getLogger(__name__)

FUTURES_URL = "https://fapi.binance.com/fapi"
FUTURES_TESTNET_URL = "https://testnet.binancefuture.com/fapi"

# Error codes that mean the account is already in the requested state
_NO_CHANGE_MARGIN_TYPE = -4046
_NO_CHANGE_POSITION_MODE = -4059


class BinanceFuturesClient(BinanceRestClient):
    def __init__(
        self,
        api_key: str,
        api_secret: str,
        testnet: bool = True,
        timeout: float = 10.0,
        recv_window: int = 5000,
    ) -> None:
        super().__init__(
            api_key,
            api_secret,
            FUTURES_TESTNET_URL if testnet else FUTURES_URL,
            timeout=timeout,
            recv_window=recv_window,
        )

    def _executed_price(self, data: dict[str, Any], executed: float) -> float | None:
        return _float(data.get("avgPrice")) or None

    @staticmethod
    def _order_params(
        side: OrderSide,
        position_side: PositionSide | None,
        reduce_only: bool,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"side": side.value}
        if position_side is not None:
            params["positionSide"] = position_side.value
        # Hedge-mode orders are closed via positionSide; reduceOnly is rejected there
        if reduce_only and position_side in (None, PositionSide.BOTH):
            params["reduceOnly"] = "true"
        return params

    async def server_time(self) -> int:
        data = await self._request("GET", "/v1/time")
        return int(data["serverTime"])

    async def _account(self) -> dict[str, Any]:
        return await self._request("GET", "/v2/account", signed=True)

    async def balances(self) -> list[Balance]:
        """Futures wallet balances; ``free`` is the available margin."""
        account = await self._account()
        result = []
        for asset in account.get("assets", []):
            available = _float(asset.get("availableBalance"))
            wallet = _float(asset.get("walletBalance"))
            if wallet or available:
                result.append(
                    Balance(asset=asset["asset"], free=available, locked=max(0.0, wallet - available))
                )
        return result

    async def positions(self) -> list[Position]:
        """Open positions (non-zero amount) only."""
        account = await self._account()
        result = []
        for p in account.get("positions", []):
            amount = _float(p.get("positionAmt"))
            if amount == 0:
                continue
            result.append(
                Position(
                    symbol=p["symbol"],
                    amount=amount,
                    entry_price=_float(p.get("entryPrice")),
                    unrealized_pnl=_float(p.get("unrealizedProfit")),
                    leverage=int(_float(p.get("leverage"), 1)),
                    position_side=PositionSide(p.get("positionSide") or "BOTH"),
                )
            )
        return result

    async def current_price(self, symbol: str) -> float:
        data = await self._request("GET", "/v1/ticker/price", {"symbol": symbol})
        return float(data["price"])

    async def place_market_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        position_side: PositionSide | None = None,
        reduce_only: bool = False,
        **kwargs: Any,
    ) -> OrderRecord:
        params = {
            "symbol": symbol,
            "type": "MARKET",
            "quantity": format_decimal(quantity),
            "newOrderRespType": "RESULT",
            **self._order_params(side, position_side, reduce_only),
        }
        data = await self._request("POST", "/v1/order", params, signed=True)
        logger.info(
            "Futures market %s %s %s placed (reduce_only=%s)",
            side.value, format_decimal(quantity), symbol, reduce_only,
        )
        return self._parse_order(data)

    async def _place_trigger(
        self,
        order_type: str,
        symbol: str,
        side: OrderSide,
        quantity: float,
        stop_price: float,
        limit_price: float,
        position_side: PositionSide | None,
        reduce_only: bool,
    ) -> OrderRecord:
        params = {
            "symbol": symbol,
            "type": order_type,
            "timeInForce": "GTC",
            "quantity": format_decimal(quantity),
            "price": format_decimal(limit_price),
            "stopPrice": format_decimal(stop_price),
            "workingType": "MARK_PRICE",
            **self._order_params(side, position_side, reduce_only),
        }
        data = await self._request("POST", "/v1/order", params, signed=True)
        return self._parse_order(data)

    async def place_stop_loss_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        stop_price: float,
        limit_price: float,
        position_side: PositionSide | None = None,
        reduce_only: bool = True,
        **kwargs: Any,
    ) -> OrderRecord:
        return await self._place_trigger(
            "STOP", symbol, side, quantity, stop_price, limit_price, position_side, reduce_only
        )

    async def place_take_profit_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        stop_price: float,
        limit_price: float,
        position_side: PositionSide | None = None,
        reduce_only: bool = True,
        **kwargs: Any,
    ) -> OrderRecord:
        return await self._place_trigger(
            "TAKE_PROFIT", symbol, side, quantity, stop_price, limit_price, position_side, reduce_only
        )

    async def cancel_all_orders(self, symbol: str) -> None:
        await self._request("DELETE", "/v1/allOpenOrders", {"symbol": symbol}, signed=True)

    async def open_orders(self, symbol: str | None = None) -> list[OrderRecord]:
        data = await self._request("GET", "/v1/openOrders", {"symbol": symbol}, signed=True)
        return [self._parse_order(o) for o in data or []]

    async def change_leverage(self, symbol: str, leverage: int) -> int:
        data = await self._request(
            "POST", "/v1/leverage", {"symbol": symbol, "leverage": leverage}, signed=True
        )
        return int(data.get("leverage", leverage))

    async def change_margin_type(self, symbol: str, margin_type: str) -> None:
        try:
            await self._request(
                "POST", "/v1/marginType", {"symbol": symbol, "marginType": margin_type}, signed=True
            )
        except ExchangeError as exc:
            if exc.code != _NO_CHANGE_MARGIN_TYPE:
                raise

    async def change_position_mode(self, hedge_mode: bool) -> None:
        try:
            await self._request(
                "POST",
                "/v1/positionSide/dual",
                {"dualSidePosition": "true" if hedge_mode else "false"},
                signed=True,
            )
        except ExchangeError as exc:
            if exc.code != _NO_CHANGE_POSITION_MODE:
                raise

    async def funding_rate(self, symbol: str) -> FundingRate:
        data = await self._request("GET", "/v1/premiumIndex", {"symbol": symbol})
        return FundingRate(
            symbol=data.get("symbol", symbol),
            funding_rate=_float(data.get("lastFundingRate")),
            mark_price=_float(data.get("markPrice")),
            index_price=_float(data.get("indexPrice")),
            next_funding_time=from_millis(data["nextFundingTime"]) if data.get("nextFundingTime") else None,
        )
