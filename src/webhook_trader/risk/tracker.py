"""Realised P&L tracking for the drawdown policy — in memory, reset daily."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal


@dataclass
class _DayState:
    daily_loss: Decimal = Decimal("0")
    daily_wins: Decimal = Decimal("0")
    day_key: str = ""  # "YYYY-MM-DD" for reset detection


class RiskTracker:
    """Accumulates today's realised wins and losses. Resets on process restart."""

    def __init__(self) -> None:
        self._state = _DayState()
        self._lock = threading.Lock()

    def _roll(self, now: datetime) -> _DayState:
        today = now.strftime("%Y-%m-%d")
        if self._state.day_key != today:
            self._state = _DayState(day_key=today)
        return self._state

    def record_close(self, pnl: Decimal, ts: datetime | None = None) -> None:
        ts = ts or datetime.now(timezone.utc)
        with self._lock:
            state = self._roll(ts)
            if pnl < 0:
                state.daily_loss += abs(pnl)
            else:
                state.daily_wins += pnl

    def net_loss(self, now: datetime | None = None) -> Decimal:
        """Today's losses minus wins, floored at zero."""
        now = now or datetime.now(timezone.utc)
        with self._lock:
            state = self._roll(now)
            return max(state.daily_loss - state.daily_wins, Decimal("0"))
