"""Structured logging."""

from webhook_trader.logging.setup import bind_request_context, get_logger, setup_logging

__all__ = ["bind_request_context", "get_logger", "setup_logging"]
