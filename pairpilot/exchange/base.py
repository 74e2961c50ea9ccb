"""Exchange client contracts and the signed REST transport shared by Binance clients."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
import time
from datetime import datetime
from typing import Any, Protocol
from urllib.parse import urlencode

import aiohttp

from pairpilot.models import Balance, FundingRate, OrderRecord, OrderSide, Position, PositionSide
from pairpilot.utils.constants import UTC

logger = logging.getLogger(__name__)


class ExchangeError(Exception):
    """Non-2xx response or transport failure from the exchange."""

    def __init__(self, message: str, status: int | None = None, code: int | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


class ExchangeClient(Protocol):
    """Operations the execution gate needs from a spot exchange."""

    async def server_time(self) -> int: ...

    async def balances(self) -> list[Balance]: ...

    async def current_price(self, symbol: str) -> float: ...

    async def place_market_order(
        self, symbol: str, side: OrderSide, quantity: float, **kwargs: Any
    ) -> OrderRecord: ...

    async def place_stop_loss_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        stop_price: float,
        limit_price: float,
        **kwargs: Any,
    ) -> OrderRecord: ...

    async def place_take_profit_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        stop_price: float,
        limit_price: float,
        **kwargs: Any,
    ) -> OrderRecord: ...

    async def cancel_all_orders(self, symbol: str) -> None: ...

    async def open_orders(self, symbol: str | None = None) -> list[OrderRecord]: ...

    async def close(self) -> None: ...


class DerivativesExchangeClient(ExchangeClient, Protocol):
    """Spot contract plus position and margin management."""

    async def positions(self) -> list[Position]: ...

    async def change_leverage(self, symbol: str, leverage: int) -> int: ...

    async def change_margin_type(self, symbol: str, margin_type: str) -> None: ...

    async def change_position_mode(self, hedge_mode: bool) -> None: ...

    async def funding_rate(self, symbol: str) -> FundingRate: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def format_decimal(value: float) -> str:
    """Render a float for a query string without exponent notation."""
    text = f"{value:.8f}".rstrip("0").rstrip(".")
    return text or "0"


def from_millis(value: Any) -> datetime:
    if value in (None, ""):
        return datetime.now(UTC)
    return datetime.fromtimestamp(int(value) / 1000, tz=UTC)


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


# ---------------------------------------------------------------------------
# Signed REST transport
# ---------------------------------------------------------------------------


class BinanceRestClient:
    """HMAC-SHA256 signed REST client.

    Signed requests carry a strictly increasing millisecond ``timestamp``
    corrected by the offset measured in ``sync_time``.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str,
        timeout: float = 10.0,
        recv_window: int = 5000,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._recv_window = recv_window
        self._time_offset_ms = 0
        self._last_timestamp = 0
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout)
            )
        return self._session

    def _timestamp(self) -> int:
        now = int(time.time() * 1000) + self._time_offset_ms
        self._last_timestamp = max(now, self._last_timestamp + 1)
        return self._last_timestamp

    def sign(self, query: str) -> str:
        return hmac.new(
            self._api_secret.encode("utf-8"), query.encode("utf-8"), hashlib.sha256
        ).hexdigest()

    def build_query(self, params: dict[str, Any], signed: bool) -> str:
        clean = {k: v for k, v in params.items() if v is not None}
        if signed:
            clean["recvWindow"] = self._recv_window
            clean["timestamp"] = self._timestamp()
        query = urlencode({k: str(v) for k, v in clean.items()})
        if signed:
            query = f"{query}&signature={self.sign(query)}"
        return query

    async def _send(self, method: str, url: str, headers: dict[str, str]) -> tuple[int, str]:
        """Perform the HTTP call and return (status, body text)."""
        session = await self._get_session()
        async with session.request(method, url, headers=headers) as response:
            return response.status, await response.text()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        signed: bool = False,
    ) -> Any:
        query = self.build_query(params or {}, signed)
        url = f"{self._base_url}{path}" + (f"?{query}" if query else "")
        headers = {"X-MBX-APIKEY": self._api_key} if self._api_key else {}

        try:
            status, body = await self._send(method, url, headers)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise ExchangeError(f"Request to {path} failed: {exc}") from exc

        try:
            data = json.loads(body) if body else None
        except ValueError:
            data = None

        if not 200 <= status < 300:
            code = data.get("code") if isinstance(data, dict) else None
            message = data.get("msg") if isinstance(data, dict) else None
            logger.warning("%s %s returned %d: %s", method, path, status, message or body[:200])
            raise ExchangeError(message or f"HTTP {status} from {path}", status=status, code=code)
        if data is None and body:
            raise ExchangeError(f"Non-JSON response from {path}", status=status)
        return data

    async def sync_time(self) -> int:
        """Fetch server time and correct the local timestamp offset."""
        server_ms = await self.server_time()
        self._time_offset_ms = server_ms - int(time.time() * 1000)
        logger.info("Exchange clock offset %dms", self._time_offset_ms)
        return server_ms

    async def server_time(self) -> int:
        raise NotImplementedError

    def _parse_order(self, data: dict[str, Any]) -> OrderRecord:
        executed = _float(data.get("executedQty"))
        position_side = data.get("positionSide")
        return OrderRecord(
            order_id=str(data.get("orderId", "")),
            symbol=data.get("symbol", ""),
            side=OrderSide(data.get("side", "BUY")),
            order_type=data.get("type", ""),
            quantity=_float(data.get("origQty")),
            status=data.get("status", ""),
            timestamp=from_millis(
                data.get("transactTime") or data.get("updateTime") or data.get("time")
            ),
            price=_float(data.get("price")) or None,
            stop_price=_float(data.get("stopPrice")) or None,
            executed_quantity=executed,
            executed_price=self._executed_price(data, executed),
            position_side=PositionSide(position_side) if position_side else None,
            reduce_only=bool(data.get("reduceOnly", False)),
        )

    def _executed_price(self, data: dict[str, Any], executed: float) -> float | None:
        raise NotImplementedError

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
