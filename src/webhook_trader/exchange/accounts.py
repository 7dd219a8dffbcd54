"""Normalization of Gate.io account payloads — pure functions, no I/O."""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any

STABLE_COINS = frozenset({"USDT", "USD", "USDG", "USDC", "USDTE"})


def safe_number(value: Any) -> float:
    """Parse a numeric field leniently; anything unparseable or non-finite is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            parsed = float(text)
        except ValueError:
            return 0.0
        return parsed if math.isfinite(parsed) else 0.0
    return 0.0


def safe_decimal(value: Any) -> Decimal:
    """Decimal twin of :func:`safe_number` for amounts that feed order math."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return parsed if parsed.is_finite() else Decimal("0")


def parse_risk_ratio(value: Any) -> float:
    """Normalize a margin risk ratio to a fraction.

    "85%" -> 0.85, 85 -> 0.85 (values above 10 are read as percentages),
    0.85 -> 0.85.
    """
    if value is None:
        return 0.0
    if isinstance(value, str):
        cleaned = value.replace("%", "").strip()
        numeric = safe_number(cleaned)
        if "%" in value:
            return numeric / 100
    else:
        numeric = safe_number(value)
    if numeric > 10:
        return numeric / 100
    return numeric


def _first(data: dict, *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def map_futures_account(data: Any) -> dict | None:
    if not isinstance(data, dict):
        return None
    return {
        "currency": str(data.get("currency") or "USDT").upper(),
        "total": safe_number(_first(data, "total", "equity", "balance", "total_avail_balance")),
        "available": safe_number(_first(data, "available", "available_balance", "available_margin")),
        "positionMargin": safe_number(_first(data, "position_margin", "positionMargin")),
        "orderMargin": safe_number(_first(data, "order_margin", "orderMargin")),
        "unrealisedPnl": safe_number(
            _first(data, "unrealised_pnl", "unrealized_pnl", "unrealisedPnl", "unrealizedPnl"),
        ),
    }


def map_spot_balances(payload: Any) -> list[dict]:
    """Spot balances with a non-zero total, currencies upper-cased."""
    if not isinstance(payload, list):
        return []
    balances = []
    for entry in payload:
        available = safe_number(_first(entry, "available", "available_balance"))
        locked = safe_number(_first(entry, "locked", "freeze", "frozen"))
        total = available + locked
        if total > 0:
            balances.append({
                "currency": str(entry.get("currency", "")).upper(),
                "available": available,
                "locked": locked,
                "total": total,
            })
    return balances


def _map_margin_leg(leg: dict, fallback_currency: str) -> dict:
    return {
        "currency": str(leg.get("currency") or fallback_currency).upper(),
        "available": safe_number(_first(leg, "available", "available_balance")),
        "locked": safe_number(_first(leg, "locked", "freeze", "frozen")),
        "borrowed": safe_number(_first(leg, "borrowed", "borrowed_amount")),
        "interest": safe_number(_first(leg, "interest", "interest_unpaid", "accrued_interest")),
    }


def map_margin_accounts(payload: Any) -> list[dict]:
    if not isinstance(payload, list):
        return []
    accounts = []
    for entry in payload:
        pair = str(entry.get("currency_pair") or entry.get("currencyPair") or "")
        base_code, _, quote_code = pair.partition("_")
        base = _map_margin_leg(entry.get("base") or {}, base_code)
        quote = _map_margin_leg(entry.get("quote") or {}, quote_code)
        accounts.append({
            "currencyPair": pair or f"{base['currency']}/{quote['currency']}",
            "base": base,
            "quote": quote,
            "risk": parse_risk_ratio(_first(entry, "risk", "risk_rate", "margin_ratio", "liability_rate")),
        })
    return accounts


def map_options_account(data: Any) -> dict | None:
    if not isinstance(data, dict):
        return None
    return {
        "total": safe_number(_first(data, "total", "total_value", "value")),
        "available": safe_number(_first(data, "available", "available_balance")),
        "positionValue": safe_number(_first(data, "position_value", "positionValue")),
        "orderMargin": safe_number(_first(data, "order_margin", "orderMargin")),
        "unrealisedPnl": safe_number(
            _first(data, "unrealised_pnl", "unrealized_pnl", "unrealisedPnl", "unrealizedPnl"),
        ),
    }


def map_futures_position(entry: Any) -> dict | None:
    """Map one futures position; zero-size or contract-less entries map to None."""
    if not isinstance(entry, dict):
        return None
    contract = str(_first(entry, "contract", "symbol", "name") or "")
    size = safe_number(_first(entry, "size", "size_value", "quantity"))
    if not contract or size == 0:
        return None
    mark_price = safe_number(_first(entry, "mark_price", "markPrice", "last_price"))
    margin = safe_number(_first(entry, "margin", "position_margin", "initial_margin"))
    pnl = safe_number(
        _first(entry, "unrealised_pnl", "unrealized_pnl", "unrealisedPnl", "unrealizedPnl"),
    )
    return {
        "contract": contract,
        "size": size,
        "side": "long" if size >= 0 else "short",
        "leverage": safe_number(_first(entry, "leverage", "leverage_ratio", "leverage_number")),
        "margin": margin,
        "pnl": pnl,
        "pnlPercentage": (pnl / margin) * 100 if margin else 0.0,
        "entryPrice": safe_number(_first(entry, "entry_price", "entryPrice")),
        "markPrice": mark_price,
        "value": abs(size) * mark_price,
    }


def aggregate_total_value(accounts: dict) -> float:
    """Stable-coin denominated estimate across all account types."""
    total = 0.0
    if accounts.get("futures"):
        total += accounts["futures"].get("total", 0.0)
    for balance in accounts.get("spot", []):
        if balance["currency"] in STABLE_COINS:
            total += balance["total"]
    for margin in accounts.get("margin", []):
        quote = margin["quote"]
        if quote["currency"] in STABLE_COINS:
            total += quote["available"] + quote["locked"] - quote["borrowed"] - quote["interest"]
    if accounts.get("options"):
        total += accounts["options"].get("total", 0.0)
    return total
