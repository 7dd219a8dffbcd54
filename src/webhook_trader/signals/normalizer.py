"""Signal normalizer — raw webhook body to canonical Signal.

Alerting services send either JSON or plain ``key: value`` lines, and use
different names for the same field. ``normalize`` never fails: anything it
cannot read falls back to the Signal defaults.
"""

from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from typing import Any

from webhook_trader.models.signal import Signal

DEFAULT_SYMBOL = "BTC_USDT"

# Checked in order; the first suffix that matches wins.
QUOTE_CURRENCIES: tuple[str, ...] = ("USDT", "USDC", "BTC", "ETH", "BNB")

# canonical field -> synonyms in priority order
FIELD_SYNONYMS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("action", ("action", "side", "order")),
    ("symbol", ("symbol", "ticker", "pair")),
    ("price", ("price", "close")),
    ("amount", ("amount", "contracts", "size")),
    ("leverage", ("leverage",)),
    ("stop_loss", ("stop_loss", "sl")),
    ("take_profit", ("take_profit", "tp")),
    ("comment", ("comment", "message")),
    ("exchange", ("exchange",)),
    ("strategy", ("strategy",)),
)


def parse_payload(raw: Any) -> dict[str, Any]:
    """Decode a webhook body into a flat dict with lower-cased keys.

    Accepts a dict, JSON text/bytes, or newline separated ``key: value``
    text. Only the first colon splits a line, so values may contain colons.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")

    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except ValueError:
            decoded = None
        if isinstance(decoded, dict):
            raw = decoded
        else:
            parsed: dict[str, Any] = {}
            for line in raw.splitlines():
                key, sep, value = line.partition(":")
                key, value = key.strip(), value.strip()
                if sep and key and value:
                    parsed[key.lower()] = value
            return parsed

    if isinstance(raw, dict):
        return {str(k).lower(): v for k, v in raw.items()}
    return {}


def format_symbol(symbol: Any) -> str:
    """Normalize a pair to ``BASE_QUOTE``.

    >>> format_symbol("btcusdt")
    'BTC_USDT'
    >>> format_symbol("eth_btc")
    'ETH_BTC'
    """
    if symbol is None or not str(symbol).strip():
        return DEFAULT_SYMBOL
    text = str(symbol).strip().upper()
    if "_" in text:
        return text
    for sep in ("/", "-"):
        if sep in text:
            return text.replace(sep, "_")
    for quote in QUOTE_CURRENCIES:
        if text.endswith(quote) and len(text) > len(quote):
            return f"{text[:-len(quote)]}_{quote}"
    return text


def _pick(payload: dict[str, Any], synonyms: tuple[str, ...]) -> Any:
    for key in synonyms:
        value = payload.get(key)
        if value is not None and value != "":
            return value
    return None


def _to_decimal(value: Any) -> Decimal | None:
    """Positive finite number, else None (zero and negatives count as absent)."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite() or number <= 0:
        return None
    return number


def normalize(raw: Any) -> Signal:
    """Turn a raw webhook body into a Signal. Never raises."""
    payload = parse_payload(raw)
    fields = {name: _pick(payload, synonyms) for name, synonyms in FIELD_SYNONYMS}

    leverage = _to_decimal(fields["leverage"])
    return Signal(
        action=str(fields["action"] or "buy").strip().lower(),
        symbol=format_symbol(fields["symbol"]),
        price=_to_decimal(fields["price"]),
        amount=_to_decimal(fields["amount"]),
        leverage=float(leverage) if leverage is not None else 1.0,
        stop_loss=_to_decimal(fields["stop_loss"]),
        take_profit=_to_decimal(fields["take_profit"]),
        comment=str(fields["comment"] or ""),
        exchange=str(fields["exchange"] or "spot"),
        strategy=str(fields["strategy"] or "manual"),
    )
