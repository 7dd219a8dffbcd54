"""Notification fan-out — Telegram and Discord, fire-and-forget."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import httpx
import structlog

from webhook_trader.config.schema import NotificationConfig

if TYPE_CHECKING:
    from webhook_trader.admin.policy import DailyStats
    from webhook_trader.models import ExecutionResult, Signal

log = structlog.get_logger("notifications")

TELEGRAM_API = "https://api.telegram.org"


class TelegramSink:
    name = "telegram"

    def __init__(self, token: str, chat_id: str, api_url: str = TELEGRAM_API) -> None:
        self.url = f"{api_url}/bot{token}/sendMessage"
        self.chat_id = chat_id

    async def send(self, http: httpx.AsyncClient, message: str) -> None:
        resp = await http.post(
            self.url,
            json={"chat_id": self.chat_id, "text": message, "parse_mode": "Markdown"},
        )
        resp.raise_for_status()


class DiscordSink:
    name = "discord"

    def __init__(self, webhook_url: str) -> None:
        self.url = webhook_url

    async def send(self, http: httpx.AsyncClient, message: str) -> None:
        resp = await http.post(self.url, json={"content": message})
        resp.raise_for_status()


def format_trade_message(signal: Signal, result: ExecutionResult) -> str:
    marker = "📈" if signal.action.lower() in ("buy", "long") else "📉"
    lines = [
        f"{marker} **Trade Executed**",
        "✅ Success" if result.success else "❌ Failed",
        "",
        f"**Symbol:** {result.symbol}",
        f"**Action:** {result.action.upper()}",
        f"**Amount:** {result.amount}",
        f"**Price:** {result.price}",
        f"**Order ID:** {result.order_id or '-'}",
        f"**Time:** {result.executed_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
    ]
    if result.realised_pnl is not None and result.realised_pnl != 0:
        lines.append(f"**Realised P&L:** {result.realised_pnl:+.2f}")
    if result.bracket is not None:
        lines.append(f"**Bracket:** {result.bracket.status}")
    if signal.comment:
        lines.append(f"**Comment:** {signal.comment}")
    return "\n".join(lines)


def format_daily_summary(stats: DailyStats) -> str:
    pnl = stats.profit - stats.loss
    return "\n".join([
        "📊 **Daily Trading Summary**",
        "",
        f"**Date:** {stats.date}",
        f"**Total Trades:** {stats.trades}",
        f"**Profit:** {stats.profit:.2f} USDT",
        f"**Loss:** {stats.loss:.2f} USDT",
        f"**Net P&L:** {pnl:+.2f} USDT",
    ])


class NotificationService:
    """Broadcasts messages to every configured sink.

    Each broadcast runs as a tracked background task; delivery errors are
    logged per sink and never reach the caller.
    """

    def __init__(
        self,
        config: NotificationConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or NotificationConfig()
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._pending: set[asyncio.Task] = set()
        self.sinks: list[TelegramSink | DiscordSink] = []
        if self.config.telegram_bot_token and self.config.telegram_chat_id:
            self.sinks.append(TelegramSink(self.config.telegram_bot_token, self.config.telegram_chat_id))
        if self.config.discord_webhook_url:
            self.sinks.append(DiscordSink(self.config.discord_webhook_url))

    @property
    def enabled(self) -> bool:
        return bool(self.sinks)

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.config.timeout_s, transport=self._transport)
        return self._http

    # ── Public API ────────────────────────────────────────────

    def notify_trade(self, signal: Signal, result: ExecutionResult) -> asyncio.Task | None:
        return self.broadcast(format_trade_message(signal, result), kind="trade")

    def notify_rejection(self, signal: Signal, reason: str) -> asyncio.Task | None:
        message = f"⚠️ **Signal Rejected**\n\n**Symbol:** {signal.symbol}\n**Action:** {signal.action.upper()}\n**Reason:** {reason}"
        return self.broadcast(message, kind="rejection")

    def alert(self, title: str, message: str) -> asyncio.Task | None:
        return self.broadcast(f"🚨 **{title}**\n{message}", kind="alert")

    def daily_summary(self, stats: DailyStats) -> asyncio.Task | None:
        return self.broadcast(format_daily_summary(stats), kind="daily_summary")

    def broadcast(self, message: str, kind: str = "message") -> asyncio.Task | None:
        """Schedule delivery of *message* to all sinks and return the task."""
        if not self.sinks:
            log.debug("notification_skipped", kind=kind, reason="no sinks configured")
            return None
        task = asyncio.get_running_loop().create_task(self._deliver(message, kind))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight delivery."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    # ── Delivery ──────────────────────────────────────────────

    async def _deliver(self, message: str, kind: str) -> dict[str, bool]:
        http = self._get_http()
        outcomes = await asyncio.gather(
            *(self._send_one(sink, http, message, kind) for sink in self.sinks)
        )
        return {sink.name: ok for sink, ok in zip(self.sinks, outcomes)}

    async def _send_one(self, sink, http: httpx.AsyncClient, message: str, kind: str) -> bool:
        try:
            await sink.send(http, message)
        except Exception as exc:
            log.error("notification_failed", sink=sink.name, kind=kind, error=str(exc))
            return False
        log.debug("notification_sent", sink=sink.name, kind=kind, sent_at=datetime.now(timezone.utc).isoformat())
        return True
