"""Account-level risk limits checked before every live order."""

from __future__ import annotations

import logging
from datetime import date, datetime

from pairpilot.execution.policy import RiskParameters
from pairpilot.utils.constants import UTC

logger = logging.getLogger(__name__)

RISK_REJECTION = "Trade rejected due to risk parameters"


class RiskGate:
    """Tracks daily realized P&L and the session's initial balance.

    Daily P&L resets at the first access after UTC midnight.
    """

    def __init__(self) -> None:
        self._initial_balance: float | None = None
        self._daily_pnl = 0.0
        self._pnl_date: date | None = None

    @property
    def initial_balance(self) -> float | None:
        return self._initial_balance

    def set_initial_balance(self, balance: float) -> None:
        self._initial_balance = balance
        logger.info("Initial balance recorded: %.2f", balance)

    def _roll_day(self) -> None:
        today = datetime.now(UTC).date()
        if self._pnl_date != today:
            self._pnl_date = today
            self._daily_pnl = 0.0

    @property
    def daily_pnl(self) -> float:
        self._roll_day()
        return self._daily_pnl

    def record_realized_pnl(self, amount: float) -> None:
        self._roll_day()
        self._daily_pnl += amount

    def drawdown(self, current_balance: float) -> float | None:
        """Fractional decline from the initial balance; None before it is known."""
        if not self._initial_balance:
            return None
        return 1 - current_balance / self._initial_balance

    def check(
        self,
        params: RiskParameters,
        current_balance: float | None,
        open_positions: int | None = None,
        max_open_positions: int | None = None,
    ) -> str | None:
        """Return a rejection message, or None when every limit holds."""
        pnl = self.daily_pnl
        if pnl < -params.max_daily_loss:
            logger.warning("Daily loss limit reached: %.2f", pnl)
            return (
                f"{RISK_REJECTION}: daily loss {abs(pnl):.2f} exceeds "
                f"limit {params.max_daily_loss:.2f}"
            )

        if current_balance is not None:
            drawdown = self.drawdown(current_balance)
            if drawdown is not None and drawdown > params.max_drawdown_percent / 100:
                logger.warning("Max drawdown reached: %.2f%%", drawdown * 100)
                return (
                    f"{RISK_REJECTION}: drawdown {drawdown * 100:.2f}% exceeds "
                    f"{params.max_drawdown_percent:g}%"
                )

        if open_positions is not None and max_open_positions is not None:
            if open_positions >= max_open_positions:
                logger.warning("Open position limit reached: %d", open_positions)
                return (
                    f"{RISK_REJECTION}: {open_positions} open positions "
                    f"(max {max_open_positions})"
                )
        return None
