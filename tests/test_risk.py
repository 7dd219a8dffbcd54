"""Tests for the risk manager and the realised P&L tracker."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from webhook_trader.config import RiskSettings
from webhook_trader.engine import PositionLedger
from webhook_trader.models import Signal
from webhook_trader.risk import RiskManager, RiskTracker

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def ledger():
    return PositionLedger()


def _manager(client, ledger, **settings) -> RiskManager:
    return RiskManager(client, ledger, RiskSettings(**settings))


class TestRiskTracker:
    def test_net_loss(self):
        tracker = RiskTracker()
        tracker.record_close(Decimal("-30"), NOW)
        tracker.record_close(Decimal("10"), NOW)
        assert tracker.net_loss(NOW) == Decimal("20")

    def test_wins_floor_at_zero(self):
        tracker = RiskTracker()
        tracker.record_close(Decimal("50"), NOW)
        assert tracker.net_loss(NOW) == Decimal("0")

    def test_resets_on_new_day(self):
        tracker = RiskTracker()
        tracker.record_close(Decimal("-30"), NOW)
        assert tracker.net_loss(NOW + timedelta(days=1)) == Decimal("0")


class TestCheckRisk:
    @pytest.mark.asyncio
    async def test_all_pass(self, gate_client, ledger):
        verdict = await _manager(gate_client, ledger).check_risk(
            Signal(action="buy", symbol="BTC_USDT", amount=Decimal("0.01")),
        )
        assert verdict.approved
        assert verdict.checks == {
            "balance": "passed",
            "position_size": "passed",
            "drawdown": "disabled",
            "correlation": "passed",
            "volatility": "disabled",
        }

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, gate_client, exchange, ledger):
        exchange.balances["USDT"] = "5"
        verdict = await _manager(gate_client, ledger).check_risk(
            Signal(action="buy", symbol="BTC_USDT", amount=Decimal("0.01")),
        )
        assert not verdict.approved
        assert verdict.reason == "Insufficient USDT balance: 5"
        assert verdict.checks == {"balance": "failed"}
        # Rejected before any price lookup
        assert "/api/v4/spot/tickers" not in exchange.paths()

    @pytest.mark.asyncio
    async def test_position_size_limit(self, gate_client, ledger):
        verdict = await _manager(gate_client, ledger).check_risk(
            Signal(action="buy", symbol="BTC_USDT", amount=Decimal("0.05")),
        )
        assert not verdict.approved
        assert verdict.reason == "Position size 2500.00 exceeds limit 1000.0"

    @pytest.mark.asyncio
    async def test_position_size_skipped_without_amount(self, gate_client, exchange, ledger):
        verdict = await _manager(gate_client, ledger).check_risk(Signal(action="buy", symbol="BTC_USDT"))
        assert verdict.approved
        assert "/api/v4/spot/tickers" not in exchange.paths()

    @pytest.mark.asyncio
    async def test_correlation_limit(self, gate_client, ledger):
        for symbol in ("ETH_USDT", "BNB_USDT"):
            ledger.apply_buy(symbol, Decimal("1"), Decimal("1"))
        manager = _manager(gate_client, ledger, max_same_direction_positions=2)

        new_symbol = await manager.check_risk(Signal(action="buy", symbol="BTC_USDT"))
        existing = await manager.check_risk(Signal(action="buy", symbol="ETH_USDT"))
        closing = await manager.check_risk(Signal(action="close", symbol="BTC_USDT"))

        assert not new_symbol.approved
        assert new_symbol.reason == "Too many long positions open (2/2)"
        assert existing.approved
        assert closing.approved

    @pytest.mark.asyncio
    async def test_drawdown_policy(self, gate_client, exchange, ledger):
        exchange.balances["USDT"] = "900"
        manager = _manager(gate_client, ledger, max_drawdown_pct=5.0)
        manager.tracker.record_close(Decimal("-100"))

        verdict = await manager.check_risk(Signal(action="buy", symbol="BTC_USDT"))
        # 100 / (900 + 100) = 10% > 5%
        assert not verdict.approved
        assert verdict.reason == "Daily drawdown 10.00% exceeds limit 5.0%"
        assert verdict.checks["drawdown"] == "failed"

    @pytest.mark.asyncio
    async def test_drawdown_policy_within_limit(self, gate_client, ledger):
        manager = _manager(gate_client, ledger, max_drawdown_pct=5.0)
        manager.tracker.record_close(Decimal("-10"))
        verdict = await manager.check_risk(Signal(action="buy", symbol="BTC_USDT"))
        assert verdict.approved
        assert verdict.checks["drawdown"] == "passed"

    @pytest.mark.asyncio
    async def test_volatility_policy(self, gate_client, exchange, ledger):
        exchange.change_pct["BTC_USDT"] = "-22.5"
        manager = _manager(gate_client, ledger, max_volatility_pct=15.0)
        verdict = await manager.check_risk(Signal(action="buy", symbol="BTC_USDT"))
        assert not verdict.approved
        assert verdict.reason == "24h change 22.5% exceeds volatility limit 15.0%"
        assert verdict.checks["volatility"] == "failed"

    @pytest.mark.asyncio
    async def test_fails_closed_on_exchange_error(self, gate_client, exchange, ledger):
        exchange.fail("/api/v4/spot/accounts", 500, message="maintenance")
        verdict = await _manager(gate_client, ledger).check_risk(Signal(action="buy", symbol="BTC_USDT"))
        assert not verdict.approved
        assert verdict.reason == "Risk check error: maintenance"
        assert verdict.checks == {"balance": "failed"}
