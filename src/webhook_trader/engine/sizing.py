"""Order sizing and P&L helpers — pure functions, no I/O."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal

from webhook_trader.config.schema import SymbolSettings
from webhook_trader.errors import SizingError


def quantize_amount(amount: Decimal, precision: int) -> Decimal:
    """Truncate to the instrument's quantity precision (never rounds up)."""
    step = Decimal(1).scaleb(-precision)
    return amount.quantize(step, rounding=ROUND_DOWN)


def calculate_order_amount(
    *,
    price: Decimal,
    available_quote: Decimal,
    requested: Decimal | None,
    risk_pct: float,
    max_position_value: float,
    symbol: SymbolSettings,
) -> Decimal:
    """Base-currency quantity for an order.

    requested given:  amount = requested
    otherwise:        amount = available_quote * risk_pct / 100 / price
    then:             amount = min(amount, max_position_value / price, symbol.max_amount)

    Raises SizingError when the result is under the symbol's minimum notional
    or minimum amount, or becomes zero at the symbol's precision.
    """
    if price <= 0:
        raise SizingError(f"Invalid market price: {price}")

    if requested is not None:
        amount = requested
    else:
        order_value = available_quote * (Decimal(str(risk_pct)) / 100)
        amount = order_value / price

    amount = min(amount, Decimal(str(max_position_value)) / price)
    if symbol.max_amount is not None:
        amount = min(amount, Decimal(str(symbol.max_amount)))

    min_notional = Decimal(str(symbol.min_notional))
    min_by_notional = min_notional / price
    if amount < min_by_notional:
        raise SizingError(
            f"Order amount too small. Minimum: {min_by_notional:.8f} ({symbol.min_notional} quote)"
        )
    if amount < Decimal(str(symbol.min_amount)):
        raise SizingError(f"Order amount too small. Minimum: {symbol.min_amount}")

    rounded = quantize_amount(amount, symbol.precision)
    if rounded <= 0:
        raise SizingError(f"Order amount rounds to zero at precision {symbol.precision}")
    return rounded


def calculate_position_size(
    entry_price: Decimal,
    equity: Decimal,
    risk_pct: float,
    stop_price: Decimal,
) -> Decimal:
    """Fixed-fractional quantity: lose risk_pct of equity if the stop is hit.

    quantity = equity * risk_pct / 100 / |entry_price - stop_price|
    """
    stop_distance = abs(entry_price - stop_price)
    if stop_distance == 0:
        return Decimal("0")
    return equity * Decimal(str(risk_pct)) / 100 / stop_distance


def calculate_pnl(
    direction: str,
    entry_price: Decimal,
    exit_price: Decimal,
    quantity: Decimal,
) -> Decimal:
    """Realised P&L for closing *quantity*.

    long:  (exit - entry) * qty
    short: (entry - exit) * qty
    """
    if direction == "long":
        return (exit_price - entry_price) * quantity
    return (entry_price - exit_price) * quantity


def calculate_stop_price(direction: str, entry_price: Decimal, stop_loss_pct: float) -> Decimal:
    """long: entry * (1 - pct/100), short: entry * (1 + pct/100)."""
    pct = Decimal(str(stop_loss_pct)) / 100
    if direction == "long":
        return entry_price * (1 - pct)
    return entry_price * (1 + pct)


def calculate_take_profit_price(direction: str, entry_price: Decimal, take_profit_pct: float) -> Decimal:
    """long: entry * (1 + pct/100), short: entry * (1 - pct/100)."""
    pct = Decimal(str(take_profit_pct)) / 100
    if direction == "long":
        return entry_price * (1 + pct)
    return entry_price * (1 - pct)
