"""Static constants for PairPilot.

Tunable thresholds (risk weights, decision bands, timeouts, model lists) are
configured via ``pairpilot.config.AppConfig``. Only values that never change
at runtime live here.
"""

from datetime import timezone

# Exchange timestamps and daily P&L rollover are in UTC
UTC = timezone.utc

# Analysis query sent to the table question-answering capability
TABLE_QUERY = "Based on the RSI and MACD indicators, should I buy, sell, or hold?"

# Row labels of the indicator table projection, in order
INDICATOR_LABELS = ("RSI", "MACD", "Signal", "Volume", "Price")

# Source tag for outcomes produced by a local heuristic
LOCAL_SOURCE = "local"

# Performance tracker ring-buffer capacity per collection
TRACKER_CAPACITY = 1000

# Default tradable symbols
DEFAULT_ALLOWED_SYMBOLS = ("BTCUSDT", "ETHUSDT", "BNBUSDT", "ADAUSDT", "DOGEUSDT")

# Limit-price offset applied beyond a protective stop trigger
PROTECTIVE_LIMIT_OFFSET = 0.01
