"""Admin policy gate — allow-lists, amount bounds and the daily trade counter."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog

from webhook_trader.config.schema import PolicySettings
from webhook_trader.exchange.accounts import safe_number
from webhook_trader.models import GateVerdict, Signal

if TYPE_CHECKING:
    from webhook_trader.exchange.gate import GateClient
    from webhook_trader.persistence.queue import PersistenceQueue

log = structlog.get_logger("admin_policy")

# Subset of PolicySettings exposed as "signal rules" by the admin API
SIGNAL_RULE_FIELDS = (
    "allowed_actions",
    "min_amount",
    "max_amount",
    "require_stop_loss",
    "require_take_profit",
)

ManualApprover = Callable[[Signal], bool]


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass
class DailyStats:
    """Per-day counters. Reset lazily when the calendar date changes."""

    trades: int = 0
    profit: float = 0.0
    loss: float = 0.0
    date: str = ""


class AdminPolicyGate:
    """First gate in the pipeline; approval increments the daily trade count.

    When ``auto_approve`` is off, an installed ``approver`` decides. Without
    one the gate approves every rule-abiding signal as "Manually approved".
    """

    def __init__(
        self,
        settings: PolicySettings | None = None,
        *,
        approver: ManualApprover | None = None,
        persistence: PersistenceQueue | None = None,
        client: GateClient | None = None,
        today: Callable[[], date] = _utc_today,
    ) -> None:
        self.settings = settings or PolicySettings()
        self.approver = approver
        self.persistence = persistence
        self.client = client
        self._today = today
        self._lock = threading.Lock()
        self._stats = DailyStats(date=today().isoformat())

    # ── Daily stats ───────────────────────────────────────────

    def _roll_day(self) -> None:
        """Reset counters if the stored date is not today. Caller holds the lock."""
        today = self._today().isoformat()
        if self._stats.date != today:
            log.info("daily_stats_reset", previous=asdict(self._stats), date=today)
            self._stats = DailyStats(date=today)

    @property
    def daily_stats(self) -> DailyStats:
        with self._lock:
            self._roll_day()
            return DailyStats(**asdict(self._stats))

    def record_result(self, pnl: Decimal | float) -> None:
        """Accumulate realised P&L from a closing trade into today's stats."""
        value = float(pnl)
        with self._lock:
            self._roll_day()
            if value >= 0:
                self._stats.profit += value
            else:
                self._stats.loss += abs(value)

    # ── Validation ────────────────────────────────────────────

    def validate(self, signal: Signal) -> GateVerdict:
        """Apply the ordered policy rules; the first failing rule wins."""
        with self._lock:
            self._roll_day()
            verdict = self._evaluate(signal)
            if verdict.approved:
                self._stats.trades += 1

        if verdict.approved:
            log.info("signal_approved", symbol=signal.symbol, action=signal.action, reason=verdict.reason)
        else:
            log.warning("signal_rejected", gate="admin", symbol=signal.symbol, reason=verdict.reason)
        return verdict

    def _evaluate(self, signal: Signal) -> GateVerdict:
        s = self.settings

        if self._stats.trades >= s.max_daily_trades:
            return GateVerdict(False, f"Daily trade limit reached ({s.max_daily_trades})")

        if signal.symbol not in s.allowed_symbols:
            return GateVerdict(False, f"Symbol {signal.symbol} not allowed")

        if signal.action.lower() not in {a.lower() for a in s.allowed_actions}:
            return GateVerdict(False, f"Action {signal.action} not allowed")

        if signal.amount is not None:
            if signal.amount < Decimal(str(s.min_amount)):
                return GateVerdict(False, f"Amount too small (min: {s.min_amount})")
            if signal.amount > Decimal(str(s.max_amount)):
                return GateVerdict(False, f"Amount too large (max: {s.max_amount})")

        if s.require_stop_loss and signal.stop_loss is None:
            return GateVerdict(False, "Stop loss required")
        if s.require_take_profit and signal.take_profit is None:
            return GateVerdict(False, "Take profit required")

        if s.auto_approve:
            return GateVerdict(True, "Auto-approved")

        if self.approver is not None:
            if self.approver(signal):
                return GateVerdict(True, "Manually approved")
            return GateVerdict(False, "Rejected by approver")

        log.info("manual_approval_fallback", symbol=signal.symbol, action=signal.action)
        return GateVerdict(True, "Manually approved")

    # ── Administration ────────────────────────────────────────

    async def update_settings(self, changes: dict[str, Any]) -> PolicySettings:
        """Merge *changes* into the settings, validate, and persist."""
        merged = self.settings.model_dump() | changes
        self.settings = PolicySettings.model_validate(merged)
        log.info("policy_settings_updated", changed=sorted(changes))
        if self.persistence is not None:
            await self.persistence.save_settings(self.settings.model_dump())
        return self.settings

    def signal_rules(self) -> dict[str, Any]:
        return {k: getattr(self.settings, k) for k in SIGNAL_RULE_FIELDS}

    async def update_signal_rules(self, changes: dict[str, Any]) -> dict[str, Any]:
        unknown = set(changes) - set(SIGNAL_RULE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown signal rule(s): {', '.join(sorted(unknown))}")
        await self.update_settings(changes)
        return self.signal_rules()

    def emergency_stop(self) -> dict[str, Any]:
        """Block all further approvals until settings are changed again."""
        self.settings = self.settings.model_copy(update={"auto_approve": False, "max_daily_trades": 0})
        log.error("emergency_stop_policy")
        return {"status": "emergency_stopped", "timestamp": datetime.now(timezone.utc).isoformat()}

    async def dashboard(self, recent_trades: list[dict] | None = None) -> dict[str, Any]:
        """Balances, open-order count, daily stats and total USDT estimate."""
        if self.client is None:
            raise RuntimeError("dashboard requires an exchange client")
        balances = await self.client.get_spot_balances()
        open_orders = await self.client.get_open_orders()

        total_value = 0.0
        held = []
        for entry in balances:
            currency = str(entry.get("currency", "")).upper()
            available = safe_number(entry.get("available"))
            locked = safe_number(entry.get("locked"))
            if available <= 0 and locked <= 0:
                continue
            held.append(entry)
            if currency == "USDT":
                total_value += available + locked
            elif available > 0:
                try:
                    price = await self.client.get_price(f"{currency}_USDT")
                except Exception as exc:
                    log.debug("dashboard_price_unavailable", currency=currency, error=str(exc))
                    continue
                total_value += (available + locked) * float(price)

        return {
            "totalValue": f"{total_value:.2f}",
            "balances": held,
            "openOrders": len(open_orders),
            "dailyStats": asdict(self.daily_stats),
            "recentTrades": recent_trades or [],
            "settings": self.settings.model_dump(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def get_trades(
        self,
        symbol: str | None = None,
        limit: int = 100,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[dict]:
        """Exchange trade history, optionally restricted to [start, end]."""
        if self.client is None:
            raise RuntimeError("trade history requires an exchange client")
        trades = await self.client.get_trade_history(symbol, limit)
        if start is None and end is None:
            return trades

        def _in_range(trade: dict) -> bool:
            ms = safe_number(trade.get("create_time_ms"))
            if not ms:
                ms = safe_number(trade.get("create_time")) * 1000
            ts = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
            if start is not None and ts < start:
                return False
            if end is not None and ts > end:
                return False
            return True

        return [t for t in trades if _in_range(t)]
