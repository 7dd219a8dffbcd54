"""Risk manager — the second gate, evaluated against live exchange data."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog

from webhook_trader.config.schema import RiskSettings
from webhook_trader.exchange.accounts import safe_decimal
from webhook_trader.models import GateVerdict, Signal, direction_for_action
from webhook_trader.risk.tracker import RiskTracker

if TYPE_CHECKING:
    from webhook_trader.engine.ledger import PositionLedger
    from webhook_trader.exchange.gate import GateClient

log = structlog.get_logger("risk_manager")

PASSED = "passed"
FAILED = "failed"
DISABLED = "disabled"


@dataclass
class _CheckResult:
    outcome: str
    reason: str = ""


class RiskManager:
    """Ordered, independent pre-trade checks; the first failure wins.

    Checks: balance, position size, drawdown, correlation, volatility.
    Drawdown and volatility are disabled unless their ceiling is configured.
    Any unexpected error rejects the signal (fail closed).
    """

    def __init__(
        self,
        client: GateClient,
        ledger: PositionLedger,
        settings: RiskSettings | None = None,
        tracker: RiskTracker | None = None,
    ) -> None:
        self.client = client
        self.ledger = ledger
        self.settings = settings or RiskSettings()
        self.tracker = tracker or RiskTracker()

    async def check_risk(self, signal: Signal) -> GateVerdict:
        log.info("risk_check_started", symbol=signal.symbol, action=signal.action)
        checks: dict[str, str] = {}
        ctx: dict[str, Decimal] = {}
        steps = (
            ("balance", self._check_balance),
            ("position_size", self._check_position_size),
            ("drawdown", self._check_drawdown),
            ("correlation", self._check_correlation),
            ("volatility", self._check_volatility),
        )
        for name, check in steps:
            try:
                result = await check(signal, ctx)
            except Exception as exc:
                log.exception("risk_check_error", check=name, symbol=signal.symbol)
                checks[name] = FAILED
                return GateVerdict(False, f"Risk check error: {exc}", checks)
            checks[name] = result.outcome
            if result.outcome == FAILED:
                log.warning("signal_rejected", gate="risk", check=name, reason=result.reason)
                return GateVerdict(False, result.reason, checks)

        log.info("risk_check_passed", symbol=signal.symbol, checks=checks)
        return GateVerdict(True, "All risk checks passed", checks)

    # ── Individual checks ─────────────────────────────────────
    # Each returns a _CheckResult; ctx carries data fetched by earlier checks.

    async def _check_balance(self, signal: Signal, ctx: dict[str, Decimal]) -> _CheckResult:
        quote = signal.quote_currency
        available = await self.client.get_available(quote)
        ctx["available_quote"] = available
        if available < Decimal(str(self.settings.min_quote_balance)):
            return _CheckResult(FAILED, f"Insufficient {quote} balance: {available}")
        return _CheckResult(PASSED)

    async def _check_position_size(self, signal: Signal, ctx: dict[str, Decimal]) -> _CheckResult:
        if signal.amount is None:
            return _CheckResult(PASSED)
        price = await self.client.get_price(signal.symbol)
        position_value = signal.amount * price
        limit = Decimal(str(self.settings.max_position_value))
        if position_value > limit:
            return _CheckResult(
                FAILED, f"Position size {position_value} exceeds limit {self.settings.max_position_value}",
            )
        return _CheckResult(PASSED)

    async def _check_drawdown(self, signal: Signal, ctx: dict[str, Decimal]) -> _CheckResult:
        ceiling = self.settings.max_drawdown_pct
        if ceiling is None:
            return _CheckResult(DISABLED)
        net_loss = self.tracker.net_loss(datetime.now(timezone.utc))
        if net_loss <= 0:
            return _CheckResult(PASSED)
        reference = ctx.get("available_quote", Decimal("0")) + net_loss
        drawdown_pct = net_loss / reference * 100
        if drawdown_pct > Decimal(str(ceiling)):
            return _CheckResult(
                FAILED, f"Daily drawdown {drawdown_pct:.2f}% exceeds limit {ceiling}%",
            )
        return _CheckResult(PASSED)

    async def _check_correlation(self, signal: Signal, ctx: dict[str, Decimal]) -> _CheckResult:
        direction = direction_for_action(signal.action)
        if direction is None:
            return _CheckResult(PASSED)
        # The incoming symbol counts once whether it opens or adds to a position
        others = self.ledger.count_direction(direction, exclude_symbol=signal.symbol)
        count_after = others + 1
        limit = self.settings.max_same_direction_positions
        if count_after > limit:
            return _CheckResult(FAILED, f"Too many {direction} positions open ({others}/{limit})")
        return _CheckResult(PASSED)

    async def _check_volatility(self, signal: Signal, ctx: dict[str, Decimal]) -> _CheckResult:
        ceiling = self.settings.max_volatility_pct
        if ceiling is None:
            return _CheckResult(DISABLED)
        ticker = await self.client.get_ticker(signal.symbol)
        change = abs(safe_decimal(ticker.get("change_percentage")))
        if change > Decimal(str(ceiling)):
            return _CheckResult(FAILED, f"24h change {change}% exceeds volatility limit {ceiling}%")
        return _CheckResult(PASSED)
