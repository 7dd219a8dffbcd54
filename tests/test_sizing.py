"""Tests for order sizing and P&L helpers."""

from __future__ import annotations

from decimal import Decimal

import pytest

from webhook_trader.config import SymbolSettings
from webhook_trader.engine.sizing import (
    calculate_order_amount,
    calculate_pnl,
    calculate_position_size,
    calculate_stop_price,
    calculate_take_profit_price,
    quantize_amount,
)
from webhook_trader.errors import SizingError

BTC = SymbolSettings(min_amount=0.0001, max_amount=1, precision=8, min_notional=10)


def _size(**kw) -> Decimal:
    params = dict(
        price=Decimal("50000"),
        available_quote=Decimal("10000"),
        requested=None,
        risk_pct=2.0,
        max_position_value=1000.0,
        symbol=BTC,
    )
    params.update(kw)
    return calculate_order_amount(**params)


class TestQuantize:
    def test_truncates_never_rounds_up(self):
        assert quantize_amount(Decimal("0.123456789"), 8) == Decimal("0.12345678")
        assert quantize_amount(Decimal("1.99999"), 2) == Decimal("1.99")

    def test_precision_zero(self):
        assert quantize_amount(Decimal("3.7"), 0) == Decimal("3")


class TestOrderAmount:
    def test_requested_amount_used_verbatim(self):
        assert _size(requested=Decimal("0.01")) == Decimal("0.01")

    def test_risk_percentage_sizing(self):
        # 2% of 10000 = 200 quote -> 0.004 BTC
        assert _size() == Decimal("0.004")

    def test_clamped_to_max_position_value(self):
        # 1000 / 50000 = 0.02
        assert _size(requested=Decimal("0.5")) == Decimal("0.02")
        assert _size(available_quote=Decimal("1000000")) == Decimal("0.02")

    def test_clamped_to_symbol_max_amount(self):
        cheap = SymbolSettings(min_amount=0, max_amount=1, precision=8, min_notional=1)
        assert _size(price=Decimal("10"), requested=Decimal("50"), symbol=cheap) == Decimal("1")

    def test_below_min_notional_fails(self):
        # 2% of 20 = 0.4 quote, under the 10 quote floor
        with pytest.raises(SizingError, match="Order amount too small"):
            _size(available_quote=Decimal("20"))

    def test_below_min_amount_fails(self):
        coarse = SymbolSettings(min_amount=0.5, precision=4, min_notional=1)
        with pytest.raises(SizingError, match="Minimum: 0.5"):
            _size(price=Decimal("100"), requested=Decimal("0.1"), symbol=coarse)

    def test_rounds_to_zero_fails(self):
        whole = SymbolSettings(min_amount=0, precision=0, min_notional=1)
        with pytest.raises(SizingError, match="rounds to zero"):
            _size(requested=Decimal("0.5"), price=Decimal("10"), symbol=whole)

    def test_per_symbol_precision(self):
        eth = SymbolSettings(min_amount=0.001, max_amount=10, precision=6, min_notional=10)
        amount = _size(price=Decimal("3000"), requested=Decimal("0.123456789"), symbol=eth)
        assert amount == Decimal("0.123456")

    def test_invalid_price(self):
        with pytest.raises(SizingError, match="Invalid market price"):
            _size(price=Decimal("0"))

    @pytest.mark.parametrize("balance", ["600", "10000", "123456.78", "99999999"])
    def test_never_exceeds_max_position_value(self, balance):
        amount = _size(available_quote=Decimal(balance), risk_pct=50.0)
        assert amount * Decimal("50000") <= Decimal("1000")


class TestPnl:
    def test_long(self):
        assert calculate_pnl("long", Decimal("100"), Decimal("110"), Decimal("2")) == Decimal("20")

    def test_short(self):
        assert calculate_pnl("short", Decimal("100"), Decimal("110"), Decimal("2")) == Decimal("-20")


class TestBracketPrices:
    def test_long_levels(self):
        assert calculate_stop_price("long", Decimal("100"), 2.0) == Decimal("98")
        assert calculate_take_profit_price("long", Decimal("100"), 4.0) == Decimal("104")

    def test_short_levels(self):
        assert calculate_stop_price("short", Decimal("100"), 2.0) == Decimal("102")
        assert calculate_take_profit_price("short", Decimal("100"), 4.0) == Decimal("96")


class TestPositionSize:
    def test_fixed_fractional(self):
        # Risk 1% of 10000 = 100 over a 500 stop distance -> 0.2
        qty = calculate_position_size(Decimal("50000"), Decimal("10000"), 1.0, Decimal("49500"))
        assert qty == Decimal("0.2")

    def test_zero_stop_distance(self):
        assert calculate_position_size(Decimal("100"), Decimal("1000"), 1.0, Decimal("100")) == 0
