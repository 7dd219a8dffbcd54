"""Bracket monitor — background watcher closing positions at stop-loss / take-profit."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Awaitable, Callable

import structlog

from webhook_trader.errors import InsufficientBalanceError
from webhook_trader.models import BracketStatus

if TYPE_CHECKING:
    from webhook_trader.exchange.gate import GateClient

log = structlog.get_logger("bracket_monitor")

CloseCallback = Callable[[str, str], Awaitable[object]]


@dataclass
class Bracket:
    symbol: str
    direction: str  # "long" or "short"
    stop_loss: Decimal | None
    take_profit: Decimal | None


def trigger_reason(bracket: Bracket, price: Decimal) -> str | None:
    """Return "stop_loss", "take_profit" or None for *price*. Stop wins ties."""
    long = bracket.direction == "long"
    if bracket.stop_loss is not None:
        if (long and price <= bracket.stop_loss) or (not long and price >= bracket.stop_loss):
            return "stop_loss"
    if bracket.take_profit is not None:
        if (long and price >= bracket.take_profit) or (not long and price <= bracket.take_profit):
            return "take_profit"
    return None


class BracketMonitor:
    """Polls the ticker for every armed symbol and issues a close on a cross.

    The exchange has no native bracket order, so the levels live here and
    ``on_trigger(symbol, reason)`` is awaited once per crossing. A bracket is
    disarmed before its close is issued.
    """

    def __init__(
        self,
        client: GateClient,
        on_trigger: CloseCallback | None = None,
        poll_interval_s: float = 5.0,
    ) -> None:
        self.client = client
        self.on_trigger = on_trigger
        self.poll_interval_s = poll_interval_s
        self._brackets: dict[str, Bracket] = {}
        self._task: asyncio.Task | None = None
        self._running = False

    # ── Arming ────────────────────────────────────────────────

    def arm(
        self,
        symbol: str,
        direction: str,
        entry_price: Decimal,
        stop_loss: Decimal | None = None,
        take_profit: Decimal | None = None,
    ) -> BracketStatus:
        """Register levels for *symbol*, replacing any earlier bracket.

        Levels already on the wrong side of the entry price are refused so a
        fresh position is not closed on the first poll.
        """
        long = direction == "long"
        error = None
        if stop_loss is None and take_profit is None:
            error = "No stop loss or take profit given"
        elif stop_loss is not None and (stop_loss >= entry_price if long else stop_loss <= entry_price):
            error = f"Stop loss {stop_loss} is on the wrong side of entry {entry_price}"
        elif take_profit is not None and (take_profit <= entry_price if long else take_profit >= entry_price):
            error = f"Take profit {take_profit} is on the wrong side of entry {entry_price}"

        if error is not None:
            log.warning("bracket_rejected", symbol=symbol, error=error)
            return BracketStatus(status="failed", stop_loss=stop_loss, take_profit=take_profit, error=error)

        self._brackets[symbol] = Bracket(symbol, direction, stop_loss, take_profit)
        log.info(
            "bracket_armed",
            symbol=symbol,
            direction=direction,
            stop_loss=float(stop_loss) if stop_loss is not None else None,
            take_profit=float(take_profit) if take_profit is not None else None,
        )
        return BracketStatus(status="armed", stop_loss=stop_loss, take_profit=take_profit)

    def disarm(self, symbol: str) -> bool:
        removed = self._brackets.pop(symbol, None) is not None
        if removed:
            log.info("bracket_disarmed", symbol=symbol)
        return removed

    def armed(self) -> dict[str, Bracket]:
        return dict(self._brackets)

    # ── Lifecycle ─────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        log.info("bracket_monitor_started", poll_interval_s=self.poll_interval_s)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        log.info("bracket_monitor_stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.check_once()
            except asyncio.CancelledError:
                break
            except Exception:
                log.exception("bracket_poll_error")
            await asyncio.sleep(self.poll_interval_s)

    async def check_once(self) -> list[tuple[str, str]]:
        """Poll every armed symbol once. Returns the (symbol, reason) pairs fired."""
        fired: list[tuple[str, str]] = []
        for symbol, bracket in list(self._brackets.items()):
            try:
                price = await self.client.get_price(symbol)
            except Exception:
                log.warning("bracket_price_unavailable", symbol=symbol, exc_info=True)
                continue

            reason = trigger_reason(bracket, price)
            if reason is None:
                continue

            self.disarm(symbol)
            log.info("bracket_triggered", symbol=symbol, reason=reason, price=float(price))
            fired.append((symbol, reason))
            if self.on_trigger is None:
                continue
            try:
                await self.on_trigger(symbol, reason)
            except InsufficientBalanceError:
                log.warning("bracket_position_gone", symbol=symbol, reason=reason)
            except Exception:
                log.exception("bracket_close_failed", symbol=symbol, reason=reason)
                # The position is still open; keep it protected so the next poll retries
                self._brackets.setdefault(symbol, bracket)
                log.warning("bracket_rearmed", symbol=symbol, reason=reason)
        return fired
