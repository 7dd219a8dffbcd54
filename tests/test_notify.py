"""Tests for notification formatting and fan-out."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from webhook_trader.admin.policy import DailyStats
from webhook_trader.config.schema import NotificationConfig
from webhook_trader.models import ExecutionResult, Signal
from webhook_trader.notify import NotificationService, format_trade_message
from webhook_trader.notify.service import format_daily_summary

BOTH = NotificationConfig(
    telegram_bot_token="TOKEN",
    telegram_chat_id="42",
    discord_webhook_url="https://discord.test/hook",
)


def _result(**kw) -> ExecutionResult:
    params = dict(
        success=True,
        order_id="1000",
        symbol="BTC_USDT",
        action="buy",
        amount=Decimal("0.01"),
        price=Decimal("50000"),
        status="closed",
        executed_at=datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc),
    )
    params.update(kw)
    return ExecutionResult(**params)


class Recorder:
    def __init__(self, fail_host: str | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_host = fail_host

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == self.fail_host:
            return httpx.Response(500, text="down")
        return httpx.Response(200, json={"ok": True})


class TestFormatting:
    def test_trade_message(self):
        message = format_trade_message(
            Signal(action="buy", symbol="BTC_USDT", comment="breakout"), _result(),
        )
        assert "**Trade Executed**" in message
        assert "**Symbol:** BTC_USDT" in message
        assert "**Action:** BUY" in message
        assert "**Order ID:** 1000" in message
        assert "**Time:** 2025-06-15 12:00:00 UTC" in message
        assert "**Comment:** breakout" in message

    def test_trade_message_with_pnl(self):
        message = format_trade_message(
            Signal(action="close", symbol="BTC_USDT"),
            _result(action="close", realised_pnl=Decimal("-12.5")),
        )
        assert message.startswith("📉")
        assert "**Realised P&L:** -12.50" in message

    def test_daily_summary(self):
        message = format_daily_summary(
            DailyStats(date="2025-06-15", trades=4, profit=30.0, loss=10.0),
        )
        assert "**Total Trades:** 4" in message
        assert "**Net P&L:** +20.00 USDT" in message


class TestNotificationService:
    def test_no_sinks_without_config(self):
        service = NotificationService()
        assert not service.enabled
        assert service.alert("x", "y") is None

    def test_telegram_needs_token_and_chat(self):
        service = NotificationService(NotificationConfig(telegram_bot_token="T"))
        assert service.sinks == []

    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_sink(self):
        recorder = Recorder()
        service = NotificationService(BOTH, transport=recorder.transport())
        outcome = await service.alert("Engine stopped", "manual")
        await service.close()

        assert outcome == {"telegram": True, "discord": True}
        telegram, discord = sorted(recorder.requests, key=lambda r: r.url.host)
        assert telegram.url.path == "/botTOKEN/sendMessage"
        assert json.loads(telegram.content) == {
            "chat_id": "42",
            "text": "🚨 **Engine stopped**\nmanual",
            "parse_mode": "Markdown",
        }
        assert json.loads(discord.content) == {"content": "🚨 **Engine stopped**\nmanual"}

    @pytest.mark.asyncio
    async def test_sink_failure_is_isolated(self):
        recorder = Recorder(fail_host="discord.test")
        service = NotificationService(BOTH, transport=recorder.transport())
        outcome = await service.notify_rejection(Signal(action="buy", symbol="BTC_USDT"), "limit")
        await service.close()
        assert outcome == {"telegram": True, "discord": False}

    @pytest.mark.asyncio
    async def test_drain_waits_for_pending(self):
        recorder = Recorder()
        service = NotificationService(BOTH, transport=recorder.transport())
        service.notify_trade(Signal(action="buy", symbol="BTC_USDT"), _result())
        await service.drain()
        assert len(recorder.requests) == 2
        await service.close()
