"""Tests for field normalization helpers."""

from datetime import datetime

import pytest

from journal_import.parsers.normalize import (
    FIELD_ALIASES,
    build_column_map,
    build_trade,
    detect_direction,
    detect_result,
    normalize_header,
    normalize_open_time,
    normalize_pair,
    parse_number,
    resolve_column,
)


class TestNormalizeHeader:
    @pytest.mark.parametrize("raw", ["Open Price", "open-price", "OPEN_PRICE", " Open  Price "])
    def test_variants_collapse(self, raw):
        assert normalize_header(raw) == "open_price"

    def test_slashes(self):
        assert normalize_header("S / L") == "s_l"
        assert normalize_header("T/P") == "t_p"

    def test_trailing_punctuation_dropped(self):
        assert normalize_header("Profit ($)") == "profit"

    def test_empty(self):
        assert normalize_header("") == ""
        assert normalize_header(None) == ""


class TestColumnResolution:
    def test_first_alias_wins(self):
        headers = ["pair", "symbol"]
        assert resolve_column(headers, FIELD_ALIASES["symbol"]) == 1

    def test_missing(self):
        assert resolve_column(["foo", "bar"], FIELD_ALIASES["symbol"]) is None

    def test_exclude(self):
        assert resolve_column(["price", "price"], ["price"], exclude=[0]) == 1

    def test_two_price_columns(self):
        headers = ["time", "symbol", "type", "volume", "price", "s_l", "t_p", "time", "price", "profit"]
        col_map = build_column_map(headers)
        assert col_map["open_price"] == 4
        assert col_map["close_price"] == 8
        assert col_map["open_time"] == 0
        assert col_map["stop_loss"] == 5
        assert col_map["take_profit"] == 6
        assert col_map["volume"] == 3
        assert col_map["profit"] == 9

    def test_single_price_column_has_no_close(self):
        col_map = build_column_map(["symbol", "type", "price"])
        assert col_map["open_price"] == 2
        assert col_map["close_price"] is None


class TestParseNumber:
    def test_plain(self):
        assert parse_number("1.0950") == pytest.approx(1.095)

    def test_negative(self):
        assert parse_number("-30.10") == pytest.approx(-30.10)

    def test_european_both_separators(self):
        assert parse_number("1.234,56") == pytest.approx(1234.56)

    def test_single_comma_is_decimal(self):
        assert parse_number("1,0950") == pytest.approx(1.095)

    def test_repeated_commas_are_thousands(self):
        assert parse_number("1,234,567") == pytest.approx(1234567)

    def test_currency_and_spaces_stripped(self):
        assert parse_number(" $ 1 250.50 ") == pytest.approx(1250.50)

    @pytest.mark.parametrize("raw", ["", "N/A", "-", "abc", None, "12-34"])
    def test_unparsable(self, raw):
        assert parse_number(raw) is None

    def test_numeric_passthrough(self):
        assert parse_number(5) == 5.0


class TestDirection:
    @pytest.mark.parametrize("raw", ["buy", "BUY", "Buy Limit", "long", "0"])
    def test_buy(self, raw):
        assert detect_direction(raw) == "buy"

    @pytest.mark.parametrize("raw", ["sell", "Sell Stop", "SHORT", "1"])
    def test_sell(self, raw):
        assert detect_direction(raw) == "sell"

    @pytest.mark.parametrize("raw", ["", "balance", "2", None])
    def test_ambiguous_defaults_to_buy(self, raw):
        assert detect_direction(raw) == "buy"


class TestResult:
    def test_sign_classification(self):
        results = [detect_result(v) for v in [150, -75, 0, "N/A"]]
        assert results == ["win", "loss", "breakeven", "pending"]

    def test_string_values(self):
        assert detect_result("12.5") == "win"
        assert detect_result("-0.01") == "loss"
        assert detect_result("0.00") == "breakeven"
        assert detect_result(None) == "pending"


class TestPairAndTime:
    def test_pair_cleanup(self):
        assert normalize_pair("eur/usd") == "EURUSD"
        assert normalize_pair("XAUUSD.m") == "XAUUSDM"

    def test_mt5_timestamp(self):
        assert normalize_open_time("2024.01.15 10:30:00") == "2024-01-15T10:30:00"

    def test_european_timestamp(self):
        assert normalize_open_time("15.01.2024 10:30") == "2024-01-15T10:30:00"

    def test_unknown_date_like_kept(self):
        assert normalize_open_time("2024/01/15 10h30") == "2024/01/15 10h30"

    def test_missing_falls_back_to_now(self):
        before = datetime.now().astimezone()
        value = normalize_open_time("")
        parsed = datetime.fromisoformat(value)
        assert parsed.tzinfo is not None
        assert parsed >= before.replace(microsecond=0)

    def test_non_date_text_falls_back_to_now(self):
        value = normalize_open_time("n/a")
        assert datetime.fromisoformat(value).tzinfo is not None


class TestBuildTrade:
    def test_accepts_valid_row(self):
        trade = build_trade(symbol="eurusd", direction="sell", entry_price=1.1, profit="-5")
        assert trade is not None
        assert trade.pair == "EURUSD"
        assert trade.direction == "sell"
        assert trade.profit_loss == -5.0
        assert trade.result == "loss"

    def test_short_pair_rejected(self):
        assert build_trade(symbol="EU", direction="buy", entry_price=1.1) is None

    @pytest.mark.parametrize("price", [None, 0.0, -1.5])
    def test_non_positive_entry_rejected(self, price):
        assert build_trade(symbol="EURUSD", direction="buy", entry_price=price) is None

    def test_exit_price_does_not_replace_missing_entry(self):
        trade = build_trade(symbol="EURUSD", direction="buy", entry_price=None, exit_price=1.2)
        assert trade is None

    def test_missing_profit_is_pending(self):
        trade = build_trade(symbol="EURUSD", direction="buy", entry_price=1.1)
        assert trade.profit_loss is None
        assert trade.result == "pending"
