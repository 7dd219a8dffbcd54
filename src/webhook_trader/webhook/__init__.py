"""Webhook intake: request validation and the signal pipeline."""

from webhook_trader.webhook.pipeline import SignalPipeline
from webhook_trader.webhook.validation import WebhookRejected, validate_request

__all__ = ["SignalPipeline", "WebhookRejected", "validate_request"]
