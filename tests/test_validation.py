"""Tests for ticker and numeric option validation."""

import pytest

from stockbot.validation import ParameterError, parse_number, parse_positive, validate_ticker


class TestValidateTicker:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("aapl", "AAPL"),
            (" brk.b ", "BRK.B"),
            ("BTC-USD", "BTC-USD"),
            ("^GSPC", "^GSPC"),
            ("EURUSD=X", "EURUSD=X"),
        ],
    )
    def test_valid(self, raw, expected):
        assert validate_ticker(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [None, "", "   ", "'; DROP TABLE--", "A" * 21, "A..B", "AAPL MSFT", "$AAPL"],
    )
    def test_invalid(self, raw):
        assert validate_ticker(raw) is None


class TestParseNumber:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("12.5", 12.5),
            ("7.61%", 7.61),
            (" 7.61 % ", 7.61),
            ("1,250", 1250.0),
            ("$4.20", 4.2),
            ("-3", -3.0),
            (8, 8.0),
        ],
    )
    def test_parses(self, raw, expected):
        assert parse_number("x", raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", [None, "", "  ", "abc", "nan", "inf", "1.2.3"])
    def test_rejects(self, raw):
        with pytest.raises(ParameterError) as exc_info:
            parse_number("eps", raw)
        assert exc_info.value.parameter == "eps"

    def test_parameter_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_number("eps", "abc")


class TestParsePositive:
    def test_accepts_positive(self):
        assert parse_positive("pe", "15") == 15.0

    @pytest.mark.parametrize("raw", ["0", "-1", "0%"])
    def test_rejects_non_positive(self, raw):
        with pytest.raises(ParameterError) as exc_info:
            parse_positive("pe", raw)
        assert "greater than zero" in exc_info.value.reason
