"""Tests for webhook payload normalization."""

from __future__ import annotations

from decimal import Decimal

import pytest

from webhook_trader.signals import format_symbol, normalize, parse_payload


class TestFormatSymbol:
    @pytest.mark.parametrize("raw, expected", [
        ("btcusdt", "BTC_USDT"),
        ("ETHUSDC", "ETH_USDC"),
        ("ethbtc", "ETH_BTC"),
        ("solbnb", "SOL_BNB"),
        ("btc_usdt", "BTC_USDT"),
        ("BTC/USDT", "BTC_USDT"),
        ("eth-usdt", "ETH_USDT"),
    ])
    def test_known_formats(self, raw, expected):
        assert format_symbol(raw) == expected

    def test_missing_symbol_defaults(self):
        assert format_symbol(None) == "BTC_USDT"
        assert format_symbol("  ") == "BTC_USDT"

    def test_unknown_quote_is_upper_cased(self):
        assert format_symbol("foobar") == "FOOBAR"

    def test_bare_quote_currency_is_not_split(self):
        assert format_symbol("usdt") == "USDT"


class TestParsePayload:
    def test_json_bytes(self):
        assert parse_payload(b'{"Action": "buy", "symbol": "BTCUSDT"}') == {
            "action": "buy", "symbol": "BTCUSDT",
        }

    def test_text_lines(self):
        raw = "action: sell\nsymbol: ETHUSDT\n\namount: 0.5\n"
        assert parse_payload(raw) == {"action": "sell", "symbol": "ETHUSDT", "amount": "0.5"}

    def test_text_value_keeps_later_colons(self):
        assert parse_payload("comment: filled at 12:30:00")["comment"] == "filled at 12:30:00"

    def test_lines_without_value_dropped(self):
        assert parse_payload("action:\nnoise\nsymbol: BTCUSDT") == {"symbol": "BTCUSDT"}

    def test_non_object_json_falls_back_to_lines(self):
        assert parse_payload("[1, 2]") == {}

    def test_dict_keys_lower_cased(self):
        assert parse_payload({"TP": 1}) == {"tp": 1}


class TestNormalize:
    def test_full_json_signal(self):
        s = normalize({
            "action": "BUY",
            "symbol": "btcusdt",
            "price": "50000",
            "amount": 0.01,
            "leverage": "3",
            "stop_loss": "48000",
            "take_profit": 55000,
            "comment": "breakout",
            "strategy": "ema_cross",
        })
        assert s.action == "buy"
        assert s.symbol == "BTC_USDT"
        assert s.price == Decimal("50000")
        assert s.amount == Decimal("0.01")
        assert s.leverage == 3.0
        assert s.stop_loss == Decimal("48000")
        assert s.take_profit == Decimal("55000")
        assert s.comment == "breakout"
        assert s.strategy == "ema_cross"
        assert s.exchange == "spot"

    def test_synonyms(self):
        s = normalize("side: sell\nticker: ETHUSDT\nclose: 3000\ncontracts: 2\nsl: 3100\ntp: 2800\nmessage: hi")
        assert s.action == "sell"
        assert s.symbol == "ETH_USDT"
        assert s.price == Decimal("3000")
        assert s.amount == Decimal("2")
        assert s.stop_loss == Decimal("3100")
        assert s.take_profit == Decimal("2800")
        assert s.comment == "hi"

    def test_first_synonym_wins(self):
        s = normalize({"action": "close", "side": "buy", "amount": "1", "size": "5"})
        assert s.action == "close"
        assert s.amount == Decimal("1")

    def test_empty_payload_uses_defaults(self):
        s = normalize(b"")
        assert s.action == "buy"
        assert s.symbol == "BTC_USDT"
        assert s.amount is None
        assert s.price is None
        assert s.leverage == 1.0
        assert s.strategy == "manual"

    @pytest.mark.parametrize("bad", ["abc", "0", "-1", "nan", "inf", "", None, True])
    def test_unusable_numbers_become_none(self, bad):
        s = normalize({"amount": bad, "price": bad})
        assert s.amount is None
        assert s.price is None

    def test_unknown_action_survives(self):
        assert normalize({"action": "Hodl"}).action == "hodl"

    def test_wire_format_is_camel_case(self):
        data = normalize({"symbol": "BTCUSDT", "amount": "0.01", "sl": "1"}).model_dump(mode="json", by_alias=True)
        assert data["amount"] == 0.01
        assert data["stopLoss"] == 1.0
        assert data["takeProfit"] is None
        assert "stop_loss" not in data
