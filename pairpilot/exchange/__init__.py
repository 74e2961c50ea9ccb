"""Exchange clients used by the execution gate."""

from pairpilot.exchange.base import (
    BinanceRestClient,
    DerivativesExchangeClient,
    ExchangeClient,
    ExchangeError,
)
from pairpilot.exchange.futures import BinanceFuturesClient
from pairpilot.exchange.spot import BinanceSpotClient

__all__ = [
    "BinanceFuturesClient",
    "BinanceRestClient",
    "BinanceSpotClient",
    "DerivativesExchangeClient",
    "ExchangeClient",
    "ExchangeError",
]
