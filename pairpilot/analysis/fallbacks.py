"""Local heuristics that stand in for each remote analysis capability.

All four functions are pure and deterministic: identical inputs always give
identical ``HeuristicResult`` values, and none of them touch the network.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from pairpilot.models import Decision

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeuristicResult:
    value: str | float | Decision
    reasoning: str


@dataclass(frozen=True)
class DecisionThresholds:
    """Bands used by the rule cascade in ``fallback_decision``."""

    risk_override: float = 0.7
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    macd_buy_max_risk: float = 0.5
    volatile_hold_min_risk: float = 0.5
    uptrend_buy_max_risk: float = 0.6

    @classmethod
    def from_config(cls, config) -> "DecisionThresholds":
        return cls(
            risk_override=config.risk_override_threshold,
            rsi_overbought=config.rsi_overbought,
            rsi_oversold=config.rsi_oversold,
            macd_buy_max_risk=config.macd_buy_max_risk,
            volatile_hold_min_risk=config.volatile_hold_min_risk,
            uptrend_buy_max_risk=config.uptrend_buy_max_risk,
        )


# ---------------------------------------------------------------------------
# Table / indicator interpretation
# ---------------------------------------------------------------------------

_MAX_WORDS = re.compile(r"\b(highest|maximum|max)\b")
_MIN_WORDS = re.compile(r"\b(lowest|minimum|min)\b")
_AVG_WORDS = re.compile(r"\b(average|mean|avg)\b")
_ACTION_WORDS = re.compile(r"\b(buy|sell|hold)\b")
_NON_NUMERIC = re.compile(r"[^0-9.\-]+")


def _parse_number(cell: object) -> float | None:
    """Parse a table cell such as ``"1,234.5"`` or ``"$42"``; None if not numeric."""
    if isinstance(cell, (int, float)) and not isinstance(cell, bool):
        return float(cell) if math.isfinite(cell) else None
    stripped = _NON_NUMERIC.sub("", str(cell))
    if not stripped:
        return None
    try:
        value = float(stripped)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _mentions(query: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", query) is not None


def _pick_column(
    query: str, table: Mapping[str, Sequence[object]], lines: list[str]
) -> str | None:
    for column in table:
        if _mentions(query, column.lower()):
            lines.append(f"- Found column '{column}' mentioned in query")
            return column
    lines.append("- No column mentioned in query, searching for numeric columns")
    for column, cells in table.items():
        if any(_parse_number(c) is not None for c in cells):
            lines.append(f"- Selected column '{column}' as it contains numeric values")
            return column
    lines.append("- Could not identify a suitable numeric column for analysis")
    return None


def _indicator_series(table: Mapping[str, Sequence[object]], name: str) -> list[float]:
    """Values for indicator *name*, from a column of that name or a labelled row.

    Column-oriented tables (``{"RSI": [...]}``) are searched first. For
    row-oriented tables (``{"Indicator": ["RSI", ...], "Value": [...]}``) the
    first column holds labels and the value comes from the first column that
    parses as a number on that row.
    """
    for column, cells in table.items():
        if name in column.lower():
            return [v for v in (_parse_number(c) for c in cells) if v is not None]

    columns = list(table)
    if not columns:
        return []
    labels = table[columns[0]]
    for row, label in enumerate(labels):
        if str(label).strip().lower() != name:
            continue
        for column in columns[1:]:
            cells = table[column]
            if row < len(cells):
                value = _parse_number(cells[row])
                if value is not None:
                    return [value]
    return []


def _scan_extreme(cells: Sequence[object], want_max: bool) -> int | None:
    best_index: int | None = None
    best_value = -math.inf if want_max else math.inf
    for index, cell in enumerate(cells):
        value = _parse_number(cell)
        if value is None:
            continue
        # Strict comparison keeps the first occurrence on ties
        if (want_max and value > best_value) or (not want_max and value < best_value):
            best_value = value
            best_index = index
    return best_index


def fallback_table_analysis(
    query: str,
    table: Mapping[str, Sequence[object]],
    thresholds: DecisionThresholds = DecisionThresholds(),
) -> HeuristicResult:
    """Answer a question about *table* by keyword intent detection."""
    q = query.lower()
    lines = ["Table analysis reasoning:"]

    if _MAX_WORDS.search(q) or _MIN_WORDS.search(q):
        want_max = _MAX_WORDS.search(q) is not None
        label = "maximum" if want_max else "minimum"
        lines.append(f"- Detected query type: finding {label} value")
        column = _pick_column(q, table, lines)
        if column is not None:
            cells = table[column]
            index = _scan_extreme(cells, want_max)
            if index is not None:
                lines.append(f"- Found {label} value {cells[index]} in row {index + 1}")
                return HeuristicResult(str(cells[index]), "\n".join(lines))
            lines.append("- No numeric values found in the selected column")

    elif _AVG_WORDS.search(q):
        lines.append("- Detected query type: finding average value")
        column = _pick_column(q, table, lines)
        if column is not None:
            values = [v for v in (_parse_number(c) for c in table[column]) if v is not None]
            if values:
                average = sum(values) / len(values)
                lines.append(
                    f"- Sum: {sum(values):g}, Count: {len(values)}, Average: {average:.2f}"
                )
                return HeuristicResult(f"{average:.2f}", "\n".join(lines))
            lines.append("- No numeric values found in the selected column")

    elif _mentions(q, "rsi") and _ACTION_WORDS.search(q):
        lines.append("- Detected query type: RSI-based trading decision")
        series = _indicator_series(table, "rsi")
        if series:
            latest = series[-1]
            lines.append(f"- Latest RSI value: {latest:g}")
            if latest > thresholds.rsi_overbought:
                lines.append(f"- RSI > {thresholds.rsi_overbought:g} indicates overbought conditions")
                return HeuristicResult(Decision.SELL.value, "\n".join(lines))
            if latest < thresholds.rsi_oversold:
                lines.append(f"- RSI < {thresholds.rsi_oversold:g} indicates oversold conditions")
                return HeuristicResult(Decision.BUY.value, "\n".join(lines))
            lines.append("- RSI within neutral band")
            return HeuristicResult(Decision.HOLD.value, "\n".join(lines))
        lines.append("- Could not find RSI values in the table")

    elif _mentions(q, "macd") and _ACTION_WORDS.search(q):
        lines.append("- Detected query type: MACD crossover")
        macd = _indicator_series(table, "macd")
        signal = _indicator_series(table, "signal")
        if macd and signal:
            latest_macd, latest_signal = macd[-1], signal[-1]
            prev_macd = macd[-2] if len(macd) > 1 else 0.0
            prev_signal = signal[-2] if len(signal) > 1 else 0.0
            lines.append(
                f"- MACD {prev_macd:g} -> {latest_macd:g}, Signal {prev_signal:g} -> {latest_signal:g}"
            )
            if prev_macd < prev_signal and latest_macd > latest_signal:
                lines.append("- Bullish crossover above the signal line")
                return HeuristicResult(Decision.BUY.value, "\n".join(lines))
            if prev_macd > prev_signal and latest_macd < latest_signal:
                lines.append("- Bearish crossover below the signal line")
                return HeuristicResult(Decision.SELL.value, "\n".join(lines))
            lines.append("- No crossover on the latest bar")
            return HeuristicResult(Decision.HOLD.value, "\n".join(lines))
        if not macd:
            lines.append("- Could not find MACD values in the table")
        if not signal:
            lines.append("- Could not find Signal values in the table")

    lines.append("- Could not determine specific analysis type from query")
    lines.append("- Defaulting to HOLD")
    return HeuristicResult(Decision.HOLD.value, "\n".join(lines))


# ---------------------------------------------------------------------------
# Sentiment
# ---------------------------------------------------------------------------

POSITIVE_KEYWORDS: tuple[tuple[str, float], ...] = (
    ("bullish", 0.8),
    ("uptrend", 0.7),
    ("buy", 0.6),
    ("growth", 0.6),
    ("increase", 0.5),
    ("gain", 0.5),
    ("profit", 0.5),
    ("positive", 0.5),
    ("strong", 0.4),
    ("opportunity", 0.4),
    ("support", 0.3),
    ("recovery", 0.3),
    ("momentum", 0.3),
)

NEGATIVE_KEYWORDS: tuple[tuple[str, float], ...] = (
    ("bearish", 0.8),
    ("downtrend", 0.7),
    ("sell", 0.6),
    ("decline", 0.6),
    ("decrease", 0.5),
    ("loss", 0.5),
    ("negative", 0.5),
    ("weak", 0.4),
    ("risk", 0.4),
    ("resistance", 0.3),
    ("correction", 0.3),
    ("volatile", 0.3),
)

NEUTRAL_SENTIMENT_REASONING = (
    "No clear sentiment indicators found in the text. Assigning neutral sentiment."
)


def sentiment_label(score: float) -> str:
    if score < 0.4:
        return "Negative"
    if score > 0.6:
        return "Positive"
    return "Neutral"


def fallback_sentiment_analysis(text: str) -> HeuristicResult:
    """Score *text* in [0, 1] from weighted keyword substrings."""
    lowered = text.lower()
    matched_pos = [(w, wt) for w, wt in POSITIVE_KEYWORDS if w in lowered]
    matched_neg = [(w, wt) for w, wt in NEGATIVE_KEYWORDS if w in lowered]
    positive = sum(wt for _, wt in matched_pos)
    negative = sum(wt for _, wt in matched_neg)

    if positive + negative == 0:
        return HeuristicResult(0.5, NEUTRAL_SENTIMENT_REASONING)

    score = positive / (positive + negative)
    lines = ["Sentiment analysis based on keyword matching:"]
    if matched_pos:
        lines.append(f"- Positive indicators: {', '.join(w for w, _ in matched_pos)}")
    if matched_neg:
        lines.append(f"- Negative indicators: {', '.join(w for w, _ in matched_neg)}")
    lines.append(f"- Overall sentiment: {sentiment_label(score)} ({score * 100:.1f}%)")
    return HeuristicResult(score, "\n".join(lines))


# ---------------------------------------------------------------------------
# Decision synthesis
# ---------------------------------------------------------------------------

_CONDITION_PATTERNS = {
    "volatile": re.compile(r"\bvolatil(e|ity)\b"),
    "uptrend": re.compile(r"\b(uptrend|bullish)\b"),
    "downtrend": re.compile(r"\b(downtrend|bearish)\b"),
    "sideways": re.compile(r"\b(sideways|range|ranging)\b"),
}


def detect_market_conditions(text: str) -> set[str]:
    lowered = text.lower()
    return {name for name, pattern in _CONDITION_PATTERNS.items() if pattern.search(lowered)}


def fallback_decision(
    rsi: float,
    macd: float,
    signal_line: float,
    risk_score: float,
    context_text: str = "",
    thresholds: DecisionThresholds = DecisionThresholds(),
) -> HeuristicResult:
    """Ordered rule cascade; the first rule that matches decides."""
    lines = [
        "Trading decision reasoning:",
        f"- Indicators: RSI={rsi:g}, MACD={macd:g}, Signal={signal_line:g}, Risk={risk_score:.2f}",
    ]

    def decide(decision: Decision, why: str) -> HeuristicResult:
        lines.append(f"- {why}")
        return HeuristicResult(decision, "\n".join(lines))

    if risk_score > thresholds.risk_override:
        return decide(
            Decision.HOLD,
            f"Risk above {thresholds.risk_override:g}, holding as the conservative choice",
        )

    if rsi > thresholds.rsi_overbought:
        return decide(Decision.SELL, f"RSI > {thresholds.rsi_overbought:g} indicates overbought conditions")
    if rsi < thresholds.rsi_oversold:
        return decide(Decision.BUY, f"RSI < {thresholds.rsi_oversold:g} indicates oversold conditions")

    if macd > signal_line:
        if risk_score < thresholds.macd_buy_max_risk:
            return decide(Decision.BUY, "MACD above signal line with acceptable risk")
        lines.append("- MACD is bullish but risk is elevated, continuing")
    elif macd < signal_line:
        return decide(Decision.SELL, "MACD below signal line")

    conditions = detect_market_conditions(context_text)
    if conditions:
        lines.append(f"- Detected market conditions: {', '.join(sorted(conditions))}")
    if "volatile" in conditions and risk_score > thresholds.volatile_hold_min_risk:
        return decide(Decision.HOLD, "Market is volatile with elevated risk")
    if "uptrend" in conditions and risk_score < thresholds.uptrend_buy_max_risk:
        return decide(Decision.BUY, "Market is in an uptrend with acceptable risk")
    if "downtrend" in conditions:
        return decide(Decision.SELL, "Market is in a downtrend")
    if "sideways" in conditions:
        return decide(Decision.HOLD, "Market is moving sideways")

    return decide(Decision.HOLD, "No strong signals detected, defaulting to HOLD")


def parse_decision(text: str) -> Decision:
    """Read BUY, SELL or HOLD from the first line of model output."""
    first_line = text.strip().split("\n", 1)[0].upper()
    for decision in (Decision.BUY, Decision.SELL, Decision.HOLD):
        if decision.value in first_line:
            return decision
    return Decision.HOLD


# ---------------------------------------------------------------------------
# Summarization
# ---------------------------------------------------------------------------

EMPTY_SUMMARY = "No content to summarize."

# Decimal points inside numbers do not end a sentence
_SENTENCE_SPLIT = re.compile(r"[.!?]+(?!\d)|(?<!\d)[.!?]+")
_STOP_WORDS = frozenset(
    {"the", "and", "that", "this", "with", "for", "was", "were", "from", "have", "has"}
)


def fallback_summarization(text: str) -> HeuristicResult:
    """Extract the most representative sentences by word frequency."""
    sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
    lines = ["Summarization reasoning:"]

    if not sentences:
        lines.append("- No content to summarize")
        return HeuristicResult(EMPTY_SUMMARY, "\n".join(lines))

    if len(sentences) == 1:
        lines.append("- Text contains only one sentence, returning as is")
        return HeuristicResult(sentences[0].strip(), "\n".join(lines))

    lines.append(f"- Text contains {len(sentences)} sentences, using frequency-based extraction")
    frequency: dict[str, int] = {}
    for sentence in sentences:
        for word in sentence.lower().split():
            if len(word) > 3 and word not in _STOP_WORDS:
                frequency[word] = frequency.get(word, 0) + 1

    scored: list[tuple[float, int]] = []
    for index, sentence in enumerate(sentences):
        words = sentence.lower().split()
        score = sum(frequency.get(w, 0) for w in words) / len(words) if words else 0.0
        scored.append((score, index))

    count = min(3, math.ceil(len(sentences) / 3))
    # sorted() is stable, so equal scores keep their original order
    top = sorted(scored, key=lambda item: -item[0])[:count]
    lines.append(
        f"- Selected top {count} sentences: "
        + ", ".join(f"#{i + 1} ({s:.2f})" for s, i in top)
    )
    chosen = sorted(index for _, index in top)
    summary = ". ".join(sentences[i].strip() for i in chosen) + "."
    return HeuristicResult(summary, "\n".join(lines))
