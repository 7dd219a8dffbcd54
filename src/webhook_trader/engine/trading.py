"""TradingEngine — risk check, sizing, order dispatch, ledger update, trade record."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable

import structlog

from webhook_trader.config.schema import EngineConfig, SymbolSettings
from webhook_trader.engine import sizing
from webhook_trader.engine.brackets import BracketMonitor
from webhook_trader.engine.ledger import PositionLedger
from webhook_trader.errors import (
    EngineStoppedError,
    InsufficientBalanceError,
    PolicyRejection,
    UnsupportedActionError,
)
from webhook_trader.exchange.accounts import safe_decimal
from webhook_trader.models import (
    BUY_ACTIONS,
    KNOWN_ACTIONS,
    SELL_ACTIONS,
    BracketStatus,
    ExecutionResult,
    ExecutionState,
    Signal,
    direction_for_action,
)

if TYPE_CHECKING:
    from webhook_trader.exchange.gate import GateClient
    from webhook_trader.notify.service import NotificationService
    from webhook_trader.persistence.queue import PersistenceQueue
    from webhook_trader.risk.manager import RiskManager

log = structlog.get_logger("trading_engine")

PnlHook = Callable[[Decimal], None]


# RECEIVED → RISK_CHECKED → SIZED → EXECUTING → {SUCCEEDED | FAILED}
_NEXT_STATE = {
    ExecutionState.RECEIVED: ExecutionState.RISK_CHECKED,
    ExecutionState.RISK_CHECKED: ExecutionState.SIZED,
    ExecutionState.SIZED: ExecutionState.EXECUTING,
    ExecutionState.EXECUTING: ExecutionState.SUCCEEDED,
}


@dataclass
class ExecutionRun:
    """Current state of one signal's pass through the engine."""

    signal: Signal
    state: ExecutionState = ExecutionState.RECEIVED
    failed_after: ExecutionState | None = None

    def advance(self, new: ExecutionState) -> None:
        if _NEXT_STATE.get(self.state) != new:
            raise RuntimeError(f"Invalid execution transition {self.state.value} -> {new.value}")
        log.debug("execution_state", symbol=self.signal.symbol, old=self.state.value, new=new.value)
        self.state = new

    def fail(self, exc: BaseException) -> None:
        self.failed_after = self.state
        self.state = ExecutionState.FAILED
        log.debug(
            "execution_state",
            symbol=self.signal.symbol,
            old=self.failed_after.value,
            new=self.state.value,
            error=str(exc),
        )


class TradingEngine:
    """Executes approved signals against the exchange.

    Executions for the same symbol are serialized by a per-symbol lock; the
    ledger is only touched after the exchange accepted the order.
    """

    def __init__(
        self,
        client: GateClient,
        risk: RiskManager,
        ledger: PositionLedger | None = None,
        *,
        config: EngineConfig | None = None,
        symbols: dict[str, SymbolSettings] | None = None,
        persistence: PersistenceQueue | None = None,
        notifier: NotificationService | None = None,
        brackets: BracketMonitor | None = None,
        on_realised_pnl: PnlHook | None = None,
    ) -> None:
        self.client = client
        self.risk = risk
        self.ledger = ledger if ledger is not None else risk.ledger
        self.config = config or EngineConfig()
        self.symbols = symbols or {}
        self.persistence = persistence
        self.notifier = notifier
        self.brackets = brackets or BracketMonitor(
            client, poll_interval_s=self.config.bracket_poll_interval_s,
        )
        if self.brackets.on_trigger is None:
            self.brackets.on_trigger = self.close_position
        self.on_realised_pnl = on_realised_pnl
        self._locks: dict[str, asyncio.Lock] = {}
        self._active = False
        self.last_state: dict[str, ExecutionState] = {}

    # ── Lifecycle ─────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        return self._active

    async def start(self) -> None:
        self._active = True
        await self.brackets.start()
        log.info("trading_engine_started")

    async def stop(self) -> None:
        self._active = False
        await self.brackets.stop()
        log.info("trading_engine_stopped")

    def status(self) -> dict[str, Any]:
        positions = self.ledger.snapshot()
        return {
            "isActive": self._active,
            "positions": {
                s: p.model_dump(mode="json", by_alias=True) for s, p in positions.items()
            },
            "positionCount": len(positions),
            "brackets": {
                s: {
                    "direction": b.direction,
                    "stopLoss": float(b.stop_loss) if b.stop_loss is not None else None,
                    "takeProfit": float(b.take_profit) if b.take_profit is not None else None,
                }
                for s, b in self.brackets.armed().items()
            },
            "bracketMonitorRunning": self.brackets.running,
            "lastStates": {s: state.value for s, state in self.last_state.items()},
        }

    # ── Sizing ────────────────────────────────────────────────

    def symbol_settings(self, symbol: str) -> SymbolSettings:
        settings = self.symbols.get(symbol)
        if settings is not None:
            return settings
        return SymbolSettings(
            precision=self.config.default_precision,
            min_notional=self.config.min_order_value,
        )

    async def calculate_order_amount(self, signal: Signal, price: Decimal) -> Decimal:
        """Requested amount, or risk-% of the available quote balance, clamped and rounded."""
        requested = signal.amount
        available = Decimal("0")
        if requested is None:
            available = await self.client.get_available(signal.quote_currency)
        return sizing.calculate_order_amount(
            price=price,
            available_quote=available,
            requested=requested,
            risk_pct=self.risk.settings.risk_per_trade_pct,
            max_position_value=self.risk.settings.max_position_value,
            symbol=self.symbol_settings(signal.symbol),
        )

    # ── Execution ─────────────────────────────────────────────

    async def execute_signal(self, signal: Signal) -> ExecutionResult:
        """Run one approved signal to completion.

        Raises EngineStoppedError when inactive, PolicyRejection when the risk
        manager declines, and an ExecutionError subclass (including exchange
        errors) when sizing or the order fails. Failures are alerted. The
        terminal state of the run is kept in :attr:`last_state`.
        """
        action = signal.action.lower()
        run = ExecutionRun(signal)
        lock = self._locks.setdefault(signal.symbol, asyncio.Lock())
        async with lock:
            try:
                if not self._active:
                    raise EngineStoppedError()
                if action not in KNOWN_ACTIONS:
                    raise UnsupportedActionError(signal.action)

                verdict = await self.risk.check_risk(signal)
                if not verdict.approved:
                    raise PolicyRejection(verdict.reason, gate="risk")
                run.advance(ExecutionState.RISK_CHECKED)

                if action in BUY_ACTIONS:
                    result = await self._execute_buy(run, action)
                elif action in SELL_ACTIONS:
                    result = await self._execute_sell(run, action)
                else:
                    result = await self._execute_close(run, action)
                run.advance(ExecutionState.SUCCEEDED)
            except PolicyRejection as exc:
                run.fail(exc)
                log.warning("signal_rejected", gate=exc.gate, symbol=signal.symbol, reason=exc.reason)
                raise
            except Exception as exc:
                run.fail(exc)
                log.exception(
                    "execution_failed",
                    symbol=signal.symbol,
                    action=action,
                    failed_after=run.failed_after.value,
                )
                if self.notifier is not None:
                    self.notifier.alert("Trade execution failed", f"{signal.symbol} {action}: {exc}")
                raise
            finally:
                self.last_state[signal.symbol] = run.state

        self._record_trade(signal, result)
        return result

    async def _execute_buy(self, run: ExecutionRun, action: str) -> ExecutionResult:
        signal = run.signal
        price = await self.client.get_price(signal.symbol)
        amount = await self.calculate_order_amount(signal, price)
        run.advance(ExecutionState.SIZED)

        run.advance(ExecutionState.EXECUTING)
        if signal.price is not None:
            order = await self.client.create_spot_order(
                signal.symbol, "buy", amount, price=signal.price, order_type="limit",
            )
        else:
            # Gate.io market buys take the quote-currency notional
            notional = sizing.quantize_amount(amount * price, self.config.default_precision)
            order = await self.client.create_spot_order(
                signal.symbol, "buy", notional, order_type="market",
            )
        log.info("order_placed", symbol=signal.symbol, side="buy", order_id=order.get("id"))

        filled, fill_price = _fill(order, amount, signal.price or price)
        direction = direction_for_action(action) or "long"
        self.ledger.apply_buy(signal.symbol, filled, fill_price, direction=direction)

        bracket = self._arm_bracket(signal, direction, fill_price)
        return _result(signal, action, order, filled, fill_price, bracket=bracket)

    async def _execute_sell(self, run: ExecutionRun, action: str) -> ExecutionResult:
        signal = run.signal
        price = await self.client.get_price(signal.symbol)
        available = await self.client.get_available(signal.base_currency)
        if available <= 0:
            raise InsufficientBalanceError(f"No {signal.base_currency} balance to sell")

        precision = self.symbol_settings(signal.symbol).precision
        if signal.amount is not None:
            amount = await self.calculate_order_amount(signal, price)
            amount = min(amount, sizing.quantize_amount(available, precision))
            close_all = False
        else:
            amount = sizing.quantize_amount(available, precision)
            close_all = True
        run.advance(ExecutionState.SIZED)
        return await self._place_sell(run, action, amount, price, close_all=close_all)

    async def _execute_close(self, run: ExecutionRun, action: str) -> ExecutionResult:
        signal = run.signal
        available = await self.client.get_available(signal.base_currency)
        if available <= 0:
            raise InsufficientBalanceError(f"No {signal.base_currency} position to close")
        price = await self.client.get_price(signal.symbol)
        settings = self.symbol_settings(signal.symbol)
        amount = sizing.quantize_amount(available, settings.precision)
        run.advance(ExecutionState.SIZED)
        # A market close has no limit price
        run.signal = signal.model_copy(update={"price": None})
        return await self._place_sell(run, action, amount, price, close_all=True)

    async def _place_sell(
        self,
        run: ExecutionRun,
        action: str,
        amount: Decimal,
        price: Decimal,
        *,
        close_all: bool = False,
    ) -> ExecutionResult:
        """Sell *amount*; with *close_all* the ledger entry is dropped whatever was filled."""
        signal = run.signal
        if amount <= 0:
            raise InsufficientBalanceError(f"Nothing to sell for {signal.symbol}")
        run.advance(ExecutionState.EXECUTING)
        if signal.price is not None:
            order = await self.client.create_spot_order(
                signal.symbol, "sell", amount, price=signal.price, order_type="limit",
            )
        else:
            order = await self.client.create_spot_order(
                signal.symbol, "sell", amount, order_type="market",
            )
        log.info("order_placed", symbol=signal.symbol, side="sell", order_id=order.get("id"))

        filled, fill_price = _fill(order, amount, signal.price or price)
        remaining, pnl = self.ledger.apply_sell(signal.symbol, filled, fill_price, close_all=close_all)
        if remaining is None:
            self.brackets.disarm(signal.symbol)
        if pnl != 0:
            self.risk.tracker.record_close(pnl)
            if self.on_realised_pnl is not None:
                self.on_realised_pnl(pnl)
        return _result(signal, action, order, filled, fill_price, realised_pnl=pnl)

    async def close_position(self, symbol: str, reason: str = "manual") -> ExecutionResult:
        """Sell the full base balance of *symbol*, bypassing the gates.

        Used by the bracket monitor; it is still refused while the engine is
        stopped.
        """
        signal = Signal(action="close", symbol=symbol, comment=reason, strategy="bracket")
        if not self._active:
            raise EngineStoppedError()
        run = ExecutionRun(signal, state=ExecutionState.RISK_CHECKED)
        lock = self._locks.setdefault(symbol, asyncio.Lock())
        async with lock:
            try:
                result = await self._execute_close(run, "close")
                run.advance(ExecutionState.SUCCEEDED)
            except Exception as exc:
                run.fail(exc)
                log.exception("position_close_failed", symbol=symbol, reason=reason)
                if self.notifier is not None:
                    self.notifier.alert("Position close failed", f"{symbol} ({reason}): {exc}")
                raise
            finally:
                self.last_state[symbol] = run.state
        log.info("position_closed", symbol=symbol, reason=reason)
        self._record_trade(signal, result)
        if self.notifier is not None:
            self.notifier.notify_trade(signal, result)
        return result

    # ── Helpers ───────────────────────────────────────────────

    def _arm_bracket(self, signal: Signal, direction: str, entry_price: Decimal) -> BracketStatus | None:
        stop_loss = signal.stop_loss
        take_profit = signal.take_profit
        if stop_loss is None and self.config.default_stop_loss_pct is not None:
            stop_loss = sizing.calculate_stop_price(direction, entry_price, self.config.default_stop_loss_pct)
        if take_profit is None and self.config.default_take_profit_pct is not None:
            take_profit = sizing.calculate_take_profit_price(
                direction, entry_price, self.config.default_take_profit_pct,
            )
        if stop_loss is None and take_profit is None:
            return None
        try:
            return self.brackets.arm(signal.symbol, direction, entry_price, stop_loss, take_profit)
        except Exception as exc:
            log.exception("bracket_arm_failed", symbol=signal.symbol)
            return BracketStatus(status="failed", stop_loss=stop_loss, take_profit=take_profit, error=str(exc))

    def _record_trade(self, signal: Signal, result: ExecutionResult) -> None:
        if self.persistence is None:
            return
        self.persistence.save_trade({
            "signal": signal.model_dump(mode="json", by_alias=True),
            "order": result.order,
            "result": result.model_dump(mode="json", by_alias=True, exclude={"order"}),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })


def _fill(order: dict, requested: Decimal, fallback_price: Decimal) -> tuple[Decimal, Decimal]:
    """Filled quantity and price as reported by the exchange, else what was asked."""
    filled = safe_decimal(order.get("filled_amount"))
    if filled <= 0:
        filled = requested
    fill_price = safe_decimal(order.get("avg_deal_price")) or safe_decimal(order.get("price"))
    if fill_price <= 0:
        fill_price = fallback_price
    return filled, fill_price


def _result(
    signal: Signal,
    action: str,
    order: dict,
    amount: Decimal,
    price: Decimal,
    *,
    bracket: BracketStatus | None = None,
    realised_pnl: Decimal | None = None,
) -> ExecutionResult:
    return ExecutionResult(
        success=True,
        order_id=str(order["id"]) if order.get("id") is not None else None,
        symbol=signal.symbol,
        action=action,
        amount=amount,
        price=price,
        status=str(order.get("status", "open")),
        executed_at=datetime.now(timezone.utc),
        bracket=bracket,
        realised_pnl=realised_pnl,
        order=order,
    )
