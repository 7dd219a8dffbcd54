"""Outcome notifications."""

from webhook_trader.notify.service import NotificationService, format_trade_message

__all__ = ["NotificationService", "format_trade_message"]
