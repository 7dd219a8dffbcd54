"""Webhook payload normalization."""

from webhook_trader.signals.normalizer import (
    FIELD_SYNONYMS,
    QUOTE_CURRENCIES,
    format_symbol,
    normalize,
    parse_payload,
)

__all__ = ["FIELD_SYNONYMS", "QUOTE_CURRENCIES", "format_symbol", "normalize", "parse_payload"]
