"""Tests for decimal-exact amount parsing, formatting and TokenAmount comparisons."""

from decimal import Decimal

import pytest

from pulse.exceptions import InvalidAmount
from pulse.models import TokenDescriptor
from pulse.tokens.amounts import TokenAmount, format_amount, normalize_amount, to_decimal
from pulse.tokens.registry import ETH, PULSE, USDC


class TestNormalizeAmount:
    def test_usdc_tenth_is_exact(self):
        """0.1 USDC is exactly 100000 with no float drift."""
        assert normalize_amount("0.1", 6) == 100_000

    def test_eighteen_decimal_token(self):
        assert normalize_amount("1.5", 18) == 1_500_000_000_000_000_000

    def test_whole_number(self):
        assert normalize_amount("25", 6) == 25_000_000

    def test_leading_dot_and_trailing_dot(self):
        assert normalize_amount(".5", 6) == 500_000
        assert normalize_amount("2.", 6) == 2_000_000

    def test_surrounding_whitespace_ignored(self):
        assert normalize_amount("  3.25 ", 2) == 325

    def test_trailing_zeros_beyond_precision_allowed(self):
        assert normalize_amount("1.500", 2) == 150

    def test_zero_decimal_token(self):
        assert normalize_amount("7", 0) == 7
        assert normalize_amount("7.0", 0) == 7

    def test_zero_parses(self):
        assert normalize_amount("0", 18) == 0

    def test_over_precision_rejected(self):
        with pytest.raises(InvalidAmount) as exc_info:
            normalize_amount("0.0000001", 6)
        assert exc_info.value.context["decimal_places"] == 6

    @pytest.mark.parametrize("value", ["-1", "-0.5"])
    def test_negative_rejected(self, value):
        with pytest.raises(InvalidAmount):
            normalize_amount(value, 6)

    @pytest.mark.parametrize("value", ["abc", "1e5", "1,5", "NaN", "inf", "+1", "1.2.3", "0x10"])
    def test_non_numeric_rejected(self, value):
        with pytest.raises(InvalidAmount):
            normalize_amount(value, 18)

    @pytest.mark.parametrize("value", ["", "   ", "."])
    def test_empty_rejected(self, value):
        with pytest.raises(InvalidAmount):
            normalize_amount(value, 6)

    def test_non_string_rejected(self):
        with pytest.raises(InvalidAmount):
            normalize_amount(1.5, 6)  # type: ignore[arg-type]

    def test_non_ascii_digits_rejected(self):
        with pytest.raises(InvalidAmount):
            normalize_amount("\u0661\u0662", 6)


class TestFormatting:
    def test_format_drops_trailing_zeros(self):
        assert format_amount(1_500_000, 6) == "1.5"

    def test_format_whole(self):
        assert format_amount(2 * 10**18, 18) == "2"

    def test_format_sub_unit(self):
        assert format_amount(1, 6) == "0.000001"

    def test_format_zero_decimal_token(self):
        assert format_amount(42, 0) == "42"

    def test_format_parses_back(self):
        for amount in (0, 1, 999_999, 10**18 + 1):
            assert normalize_amount(format_amount(amount, 18), 18) == amount

    def test_to_decimal_is_exact_for_large_values(self):
        value = 123_456_789_012_345_678_901_234_567_890
        assert to_decimal(value, 18) == Decimal("123456789012.345678901234567890")

    @pytest.mark.parametrize(
        ("amount", "places", "rendered"),
        [
            (1_500_000, 6, "1.5"),
            (2 * 10**18, 18, "2"),
            (10**19, 18, "10"),
            (0, 6, "0"),
            (42, 0, "42"),
            (1, 6, "0.000001"),
        ],
    )
    def test_to_decimal_drops_trailing_zeros(self, amount, places, rendered):
        assert str(to_decimal(amount, places)) == rendered


class TestRoundTrip:
    @pytest.mark.parametrize("places", [0, 1, 2, 6, 8, 18])
    def test_format_then_normalize_returns_amount(self, places):
        for amount in (0, 1, 9, 10, 99, 100, 10**places, 10**places + 1, 123_456_789, 10**30 - 1):
            assert normalize_amount(format_amount(amount, places), places) == amount

    @pytest.mark.parametrize("places", [0, 6, 18])
    def test_to_decimal_agrees_with_format(self, places):
        for amount in (0, 5, 10, 1_500_000, 10**places * 7):
            assert format(to_decimal(amount, places), "f") == format_amount(amount, places)


class TestTokenAmount:
    def test_parse_and_str(self):
        amount = TokenAmount.parse("12.5", USDC)
        assert amount.value == 12_500_000
        assert str(amount) == "12.5 USDC"
        assert amount.to_decimal() == Decimal("12.5")

    def test_compare_same_token(self):
        assert TokenAmount(1, USDC) < TokenAmount(2, USDC)
        assert TokenAmount(2, USDC) >= TokenAmount(2, USDC)

    def test_compare_different_tokens_raises(self):
        with pytest.raises(ValueError, match="cannot compare"):
            _ = TokenAmount(1, USDC) < TokenAmount(1, PULSE)

    def test_compare_different_precision_raises(self):
        usdc18 = TokenDescriptor(symbol="USDC", decimal_places=18)
        with pytest.raises(ValueError, match="rebase first"):
            _ = TokenAmount(1, USDC) > TokenAmount(1, usdc18)

    def test_rebase_up_is_exact(self):
        rebased = TokenAmount(1_500_000, USDC).rebase(18)
        assert rebased.value == 1_500_000_000_000_000_000
        assert rebased.token.symbol == "USDC"
        assert rebased.token.decimal_places == 18

    def test_rebase_down_floors(self):
        rebased = TokenAmount(10**12 + 999, ETH).rebase(6)
        assert rebased.value == 1
        assert rebased.token.is_native is True
