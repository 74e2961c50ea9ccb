"""Binance spot REST client."""

from __future__ import annotations

import logging
from typing import Any

from pairpilot.exchange.base import BinanceRestClient, _float, format_decimal
from pairpilot.models import Balance, OrderRecord, OrderSide

logger = logging.getLogger(__name__)

SPOT_URL = "https://api.binance.com/api"
SPOT_TESTNET_URL = "https://testnet.binance.vision/api"


class BinanceSpotClient(BinanceRestClient):
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
            SPOT_TESTNET_URL if testnet else SPOT_URL,
            timeout=timeout,
            recv_window=recv_window,
        )

    def _executed_price(self, data: dict[str, Any], executed: float) -> float | None:
        quote = _float(data.get("cummulativeQuoteQty"))
        if executed > 0 and quote > 0:
            return quote / executed
        return None

    async def server_time(self) -> int:
        data = await self._request("GET", "/v3/time")
        return int(data["serverTime"])

    async def balances(self) -> list[Balance]:
        """Non-zero balances of the account."""
        data = await self._request("GET", "/v3/account", signed=True)
        balances = [
            Balance(asset=b["asset"], free=_float(b.get("free")), locked=_float(b.get("locked")))
            for b in data.get("balances", [])
        ]
        return [b for b in balances if b.total > 0]

    async def current_price(self, symbol: str) -> float:
        data = await self._request("GET", "/v3/ticker/price", {"symbol": symbol})
        return float(data["price"])

    async def place_market_order(
        self, symbol: str, side: OrderSide, quantity: float, **kwargs: Any
    ) -> OrderRecord:
        data = await self._request(
            "POST",
            "/v3/order",
            {
                "symbol": symbol,
                "side": side.value,
                "type": "MARKET",
                "quantity": format_decimal(quantity),
                "newOrderRespType": "FULL",
            },
            signed=True,
        )
        logger.info("Spot market %s %s %s placed", side.value, format_decimal(quantity), symbol)
        return self._parse_order(data)

    async def _place_stop_limit(
        self,
        order_type: str,
        symbol: str,
        side: OrderSide,
        quantity: float,
        stop_price: float,
        limit_price: float,
    ) -> OrderRecord:
        data = await self._request(
            "POST",
            "/v3/order",
            {
                "symbol": symbol,
                "side": side.value,
                "type": order_type,
                "timeInForce": "GTC",
                "quantity": format_decimal(quantity),
                "price": format_decimal(limit_price),
                "stopPrice": format_decimal(stop_price),
            },
            signed=True,
        )
        return self._parse_order(data)

    async def place_stop_loss_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        stop_price: float,
        limit_price: float,
        **kwargs: Any,
    ) -> OrderRecord:
        return await self._place_stop_limit(
            "STOP_LOSS_LIMIT", symbol, side, quantity, stop_price, limit_price
        )

    async def place_take_profit_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        stop_price: float,
        limit_price: float,
        **kwargs: Any,
    ) -> OrderRecord:
        return await self._place_stop_limit(
            "TAKE_PROFIT_LIMIT", symbol, side, quantity, stop_price, limit_price
        )

    async def cancel_all_orders(self, symbol: str) -> None:
        await self._request("DELETE", "/v3/openOrders", {"symbol": symbol}, signed=True)

    async def open_orders(self, symbol: str | None = None) -> list[OrderRecord]:
        data = await self._request("GET", "/v3/openOrders", {"symbol": symbol}, signed=True)
        return [self._parse_order(o) for o in data or []]
