"""Tests for the demo rate table."""

from decimal import Decimal

import pytest

from stellramp.anchor.rates import (
    is_supported,
    normalize_currency,
    rate_for,
    round_fiat,
    round_value,
    supported_currencies,
    withdrawal_rate_for,
)


class TestRateLookup:
    """Tests for rate_for and withdrawal_rate_for."""

    def test_fixed_rates(self):
        assert rate_for("USD") == Decimal("10")
        assert rate_for("EUR") == Decimal("11")
        assert rate_for("INR") == Decimal("0.12")
        assert rate_for("GBP") == Decimal("12.5")

    def test_lookup_is_case_insensitive(self):
        assert rate_for("eur") == rate_for("EUR")
        assert rate_for(" gbp ") == Decimal("12.5")

    def test_unknown_currency_falls_back_to_usd(self):
        assert rate_for("JPY") == Decimal("10")
        assert withdrawal_rate_for("JPY") == withdrawal_rate_for("USD")

    @pytest.mark.parametrize("currency", ["USD", "EUR", "INR", "GBP"])
    def test_withdrawal_rate_is_reciprocal(self, currency):
        product = rate_for(currency) * withdrawal_rate_for(currency)
        assert abs(product - 1) < Decimal("0.000001")

    def test_withdrawal_rate_precision(self):
        assert withdrawal_rate_for("USD") == Decimal("0.1")
        assert withdrawal_rate_for("EUR") == Decimal("0.0909090909")


class TestCurrencies:
    """Tests for currency helpers."""

    def test_supported_order(self):
        assert supported_currencies() == ["USD", "EUR", "INR", "GBP"]

    def test_is_supported(self):
        assert is_supported("inr")
        assert not is_supported("XYZ")

    def test_normalize_defaults_to_usd(self):
        assert normalize_currency(None) == "USD"
        assert normalize_currency("   ") == "USD"
        assert normalize_currency("eur ") == "EUR"


class TestRounding:
    """Tests for rounding helpers."""

    def test_round_value_seven_places(self):
        assert round_value(Decimal("1.23456785")) == Decimal("1.2345679")

    def test_round_fiat_half_up(self):
        assert round_fiat(Decimal("2.345")) == Decimal("2.35")
        assert round_fiat(Decimal("2.344")) == Decimal("2.34")
