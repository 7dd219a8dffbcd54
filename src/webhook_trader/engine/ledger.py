"""Position ledger — lock-guarded per-symbol holdings with atomic updates."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal

import structlog

from webhook_trader.engine.sizing import calculate_pnl
from webhook_trader.models import Position

log = structlog.get_logger("ledger")


class PositionLedger:
    """In-memory positions keyed by symbol. Rebuilt empty on restart.

    All mutation goes through :meth:`apply_buy` and :meth:`apply_sell`, each a
    single read-modify-write under the ledger lock. Readers get copies.
    """

    def __init__(self) -> None:
        self._positions: dict[str, Position] = {}
        self._lock = threading.Lock()

    def get(self, symbol: str) -> Position | None:
        with self._lock:
            pos = self._positions.get(symbol)
            return pos.model_copy() if pos is not None else None

    def snapshot(self) -> dict[str, Position]:
        with self._lock:
            return {s: p.model_copy() for s, p in self._positions.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._positions)

    def count_direction(self, direction: str, exclude_symbol: str | None = None) -> int:
        with self._lock:
            return sum(
                1 for s, p in self._positions.items()
                if p.direction == direction and s != exclude_symbol
            )

    def apply_buy(
        self,
        symbol: str,
        amount: Decimal,
        price: Decimal,
        direction: Literal["long", "short"] = "long",
        now: datetime | None = None,
    ) -> Position:
        """Add a fill at *price*; the entry price becomes the weighted average."""
        if amount <= 0:
            raise ValueError("buy amount must be positive")
        now = now or datetime.now(timezone.utc)
        with self._lock:
            current = self._positions.get(symbol)
            old_amount = current.amount if current else Decimal("0")
            old_cost = current.total_cost if current else Decimal("0")
            new_amount = old_amount + amount
            new_cost = old_cost + amount * price
            pos = Position(
                symbol=symbol,
                direction=current.direction if current else direction,
                amount=new_amount,
                avg_price=new_cost / new_amount,
                total_cost=new_cost,
                last_update=now,
            )
            self._positions[symbol] = pos
        log.info(
            "ledger_updated",
            symbol=symbol,
            side="buy",
            amount=float(pos.amount),
            avg_price=float(pos.avg_price),
        )
        return pos.model_copy()

    def apply_sell(
        self,
        symbol: str,
        amount: Decimal,
        price: Decimal,
        now: datetime | None = None,
        *,
        close_all: bool = False,
    ) -> tuple[Position | None, Decimal]:
        """Remove *amount* sold at *price*.

        Returns (remaining position or None, realised P&L of the sold part).
        The average entry price is unchanged by a partial sell; total cost
        shrinks in proportion to the fraction sold. A sell against a symbol
        with no ledger entry (an externally held balance) changes nothing.

        With *close_all* the entry is removed even when *amount* is below the
        ledger amount (exchange fees and precision truncation leave the
        exchange balance short of what was bought); P&L covers the sold part.
        """
        now = now or datetime.now(timezone.utc)
        with self._lock:
            current = self._positions.get(symbol)
            if current is None:
                return None, Decimal("0")
            sold = min(amount, current.amount)
            pnl = calculate_pnl(current.direction, current.avg_price, price, sold)
            remaining = current.amount - amount
            if close_all or remaining <= 0:
                del self._positions[symbol]
                pos = None
            else:
                sold_ratio = amount / current.amount
                pos = current.model_copy(update={
                    "amount": remaining,
                    "total_cost": current.total_cost * (1 - sold_ratio),
                    "last_update": now,
                })
                self._positions[symbol] = pos
        log.info(
            "ledger_updated",
            symbol=symbol,
            side="sell",
            remaining=float(pos.amount) if pos else 0.0,
            realised_pnl=float(pnl),
        )
        return (pos.model_copy() if pos else None), pnl

    def clear(self) -> None:
        with self._lock:
            self._positions.clear()
