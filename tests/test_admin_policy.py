"""Tests for the admin policy gate."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from webhook_trader.admin import AdminPolicyGate
from webhook_trader.config import PolicySettings
from webhook_trader.models import Signal
from webhook_trader.persistence import FileStore, PersistenceQueue


class Clock:
    def __init__(self, today: date) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today


def _signal(**kw) -> Signal:
    kw.setdefault("action", "buy")
    kw.setdefault("symbol", "BTC_USDT")
    return Signal(**kw)


@pytest.fixture
def clock():
    return Clock(date(2025, 6, 15))


@pytest.fixture
def gate(clock):
    return AdminPolicyGate(PolicySettings(auto_approve=True), today=clock)


class TestValidate:
    def test_auto_approved(self, gate):
        verdict = gate.validate(_signal(amount=Decimal("0.01")))
        assert verdict.approved
        assert verdict.reason == "Auto-approved"
        assert gate.daily_stats.trades == 1

    def test_symbol_not_allowed(self, gate):
        verdict = gate.validate(_signal(symbol="DOGE_USDT"))
        assert not verdict.approved
        assert verdict.reason == "Symbol DOGE_USDT not allowed"
        assert gate.daily_stats.trades == 0

    def test_action_not_allowed_names_action_and_keeps_counter(self, gate):
        verdict = gate.validate(_signal(action="short"))
        assert not verdict.approved
        assert verdict.reason == "Action short not allowed"
        assert gate.daily_stats.trades == 0

    def test_amount_bounds(self, gate):
        low = gate.validate(_signal(amount=Decimal("0.00001")))
        high = gate.validate(_signal(amount=Decimal("2")))
        assert low.reason == "Amount too small (min: 0.0001)"
        assert high.reason == "Amount too large (max: 1.0)"

    def test_missing_amount_skips_bounds(self, gate):
        assert gate.validate(_signal()).approved

    def test_required_fields(self, clock):
        gate = AdminPolicyGate(
            PolicySettings(auto_approve=True, require_stop_loss=True, require_take_profit=True),
            today=clock,
        )
        assert gate.validate(_signal()).reason == "Stop loss required"
        assert gate.validate(_signal(stop_loss=Decimal("1"))).reason == "Take profit required"
        assert gate.validate(_signal(stop_loss=Decimal("1"), take_profit=Decimal("2"))).approved

    def test_daily_limit(self, clock):
        gate = AdminPolicyGate(PolicySettings(auto_approve=True, max_daily_trades=2), today=clock)
        assert gate.validate(_signal()).approved
        assert gate.validate(_signal()).approved
        verdict = gate.validate(_signal())
        assert not verdict.approved
        assert verdict.reason == "Daily trade limit reached (2)"
        assert gate.daily_stats.trades == 2

    def test_rule_order_limit_before_symbol(self, clock):
        gate = AdminPolicyGate(PolicySettings(max_daily_trades=0), today=clock)
        assert gate.validate(_signal(symbol="DOGE_USDT")).reason == "Daily trade limit reached (0)"


class TestManualApproval:
    def test_fallback_approves_without_hook(self, clock):
        gate = AdminPolicyGate(PolicySettings(auto_approve=False), today=clock)
        verdict = gate.validate(_signal())
        assert verdict.approved
        assert verdict.reason == "Manually approved"

    def test_hook_can_reject(self, clock):
        seen = []

        def approver(signal):
            seen.append(signal.symbol)
            return False

        gate = AdminPolicyGate(PolicySettings(auto_approve=False), approver=approver, today=clock)
        verdict = gate.validate(_signal())
        assert not verdict.approved
        assert verdict.reason == "Rejected by approver"
        assert seen == ["BTC_USDT"]
        assert gate.daily_stats.trades == 0

    def test_hook_ignored_when_auto_approve(self, clock):
        gate = AdminPolicyGate(PolicySettings(auto_approve=True), approver=lambda s: False, today=clock)
        assert gate.validate(_signal()).approved


class TestDailyStats:
    def test_resets_once_per_date(self, gate, clock):
        gate.validate(_signal())
        gate.validate(_signal())
        gate.record_result(Decimal("5"))
        gate.record_result(Decimal("-2"))
        assert gate.daily_stats.trades == 2
        assert gate.daily_stats.profit == 5.0
        assert gate.daily_stats.loss == 2.0

        clock.today = date(2025, 6, 16)
        stats = gate.daily_stats
        assert stats.trades == 0
        assert stats.date == "2025-06-16"

        gate.validate(_signal())
        # A second read on the same date must not reset again
        assert gate.daily_stats.trades == 1
        assert gate.daily_stats.trades == 1

    def test_daily_stats_is_a_copy(self, gate):
        stats = gate.daily_stats
        stats.trades = 99
        assert gate.daily_stats.trades == 0


class TestAdministration:
    @pytest.mark.asyncio
    async def test_update_settings_persists(self, clock, tmp_path):
        queue = PersistenceQueue(FileStore(tmp_path))
        gate = AdminPolicyGate(PolicySettings(), persistence=queue, today=clock)

        updated = await gate.update_settings({"max_daily_trades": 3, "allowed_symbols": ["SOL_USDT"]})
        await queue.stop()

        assert updated.max_daily_trades == 3
        stored = FileStore(tmp_path).load_settings()
        assert stored["max_daily_trades"] == 3
        assert stored["allowed_symbols"] == ["SOL_USDT"]

    def test_stored_settings_with_retired_drawdown_key_still_load(self):
        # The daily drawdown ceiling is configured under risk.max_drawdown_pct
        settings = PolicySettings.model_validate({"max_daily_trades": 4, "max_drawdown_pct": 10.0})
        assert settings.max_daily_trades == 4
        assert "max_drawdown_pct" not in settings.model_dump()

    @pytest.mark.asyncio
    async def test_update_signal_rules_rejects_unknown_keys(self, gate):
        with pytest.raises(ValueError, match="Unknown signal rule"):
            await gate.update_signal_rules({"auto_approve": True})

    @pytest.mark.asyncio
    async def test_update_signal_rules(self, gate):
        rules = await gate.update_signal_rules({"require_stop_loss": True, "min_amount": 0.5})
        assert rules["require_stop_loss"] is True
        assert rules["min_amount"] == 0.5
        assert gate.validate(_signal(amount=Decimal("1"))).reason == "Stop loss required"

    def test_emergency_stop_blocks_everything(self, gate):
        result = gate.emergency_stop()
        assert result["status"] == "emergency_stopped"
        assert gate.settings.auto_approve is False
        verdict = gate.validate(_signal())
        assert not verdict.approved
        assert verdict.reason == "Daily trade limit reached (0)"

    @pytest.mark.asyncio
    async def test_dashboard(self, gate_client, exchange, clock):
        exchange.balances = {"USDT": "100", "BTC": "0.01", "XYZ": "5", "ETH": "0"}
        gate = AdminPolicyGate(PolicySettings(), client=gate_client, today=clock)

        data = await gate.dashboard(recent_trades=[{"id": 1}])

        # 100 USDT + 0.01 BTC at 50000; XYZ has no ticker and ETH is empty
        assert data["totalValue"] == "600.00"
        assert [b["currency"] for b in data["balances"]] == ["USDT", "BTC", "XYZ"]
        assert data["openOrders"] == 0
        assert data["recentTrades"] == [{"id": 1}]
        assert data["dailyStats"]["date"] == "2025-06-15"

    @pytest.mark.asyncio
    async def test_get_trades_date_filter(self, gate_client, exchange, clock):
        exchange.trades = [
            {"id": "1", "create_time_ms": "1718000000000"},  # 2024-06-10
            {"id": "2", "create_time": "1718600000"},        # 2024-06-17
        ]
        gate = AdminPolicyGate(PolicySettings(), client=gate_client, today=clock)

        everything = await gate.get_trades("BTC_USDT")
        recent = await gate.get_trades(start=datetime(2024, 6, 15, tzinfo=timezone.utc))
        older = await gate.get_trades(end=datetime(2024, 6, 15, tzinfo=timezone.utc))

        assert [t["id"] for t in everything] == ["1", "2"]
        assert [t["id"] for t in recent] == ["2"]
        assert [t["id"] for t in older] == ["1"]
