"""
Tests for currency validation and precision.

- Currency codes are validated at the domain boundary (Currency, Money).
- Rounding tolerance is derived from the currency's decimal places.
"""

import pytest
from decimal import Decimal

from membership_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from membership_kernel.domain.values import DEFAULT_CURRENCY, Currency, Money


class TestCurrencyRegistry:
    """Tests for ISO 4217 enforcement."""

    def test_settlement_currencies_accepted(self):
        for code in ["ARS", "BRL", "CLP", "MXN", "PYG", "UYU", "USD", "EUR"]:
            assert CurrencyRegistry.is_valid(code)
            assert CurrencyRegistry.validate(code) == code

    def test_lowercase_and_whitespace_normalized(self):
        assert CurrencyRegistry.validate("ars") == "ARS"
        assert CurrencyRegistry.validate(" UYU ") == "UYU"

    @pytest.mark.parametrize("code", ["XXY", "ABC", "123", "AR", "ARSS", "", "X"])
    def test_unknown_codes_rejected(self, code):
        assert not CurrencyRegistry.is_valid(code)

    def test_validate_errors(self):
        with pytest.raises(ValueError, match="Invalid ISO 4217 currency code"):
            CurrencyRegistry.validate("XXY")
        with pytest.raises(ValueError, match="must be 3 characters"):
            CurrencyRegistry.validate("ARSS")
        with pytest.raises(ValueError, match="Invalid currency code"):
            CurrencyRegistry.validate(None)

    def test_zero_decimal_currencies(self):
        for code in ["CLP", "PYG"]:
            assert CurrencyRegistry.get_decimal_places(code) == 0
            assert CurrencyRegistry.get_rounding_tolerance(code) == Decimal("1")

    def test_two_decimal_tolerance(self):
        for code in ["ARS", "BRL", "USD"]:
            assert CurrencyRegistry.get_rounding_tolerance(code) == Decimal("0.01")

    def test_unknown_currency_uses_default_places(self):
        assert CurrencyRegistry.get_decimal_places("XXY") == CurrencyRegistry.DEFAULT_DECIMAL_PLACES
        assert CurrencyRegistry.get_rounding_tolerance("XXY") == Decimal("0.01")

    @pytest.mark.parametrize("places,expected", [
        (0, Decimal("1")),
        (1, Decimal("0.1")),
        (2, Decimal("0.01")),
        (3, Decimal("0.001")),
    ])
    def test_tolerance_formula(self, places, expected):
        assert CurrencyRegistry._tolerance_from_decimal_places(places) == expected
        assert CurrencyInfo("TST", places, "Test").rounding_tolerance == expected

    def test_quantize_string(self):
        assert CurrencyInfo("ARS", 2, "Argentine Peso").quantize_string == "0.00"
        assert CurrencyInfo("CLP", 0, "Chilean Peso").quantize_string == "1"


class TestCurrencyValueObject:
    """Tests for the Currency value object."""

    def test_default_is_ars(self):
        assert Currency(DEFAULT_CURRENCY).code == "ARS"
        assert Currency("ARS").name == "Argentine Peso"

    def test_immutable(self):
        currency = Currency("ARS")
        with pytest.raises(AttributeError):
            currency.code = "USD"

    def test_case_normalization_and_hash(self):
        assert Currency("ars") == Currency("ARS")
        assert hash(Currency("ars")) == hash(Currency("ARS"))

    def test_invalid_code_rejected(self):
        with pytest.raises(ValueError):
            Currency("XXY")
        with pytest.raises(ValueError):
            Money.of(Decimal("100.00"), "XXY")

    def test_cross_currency_addition_rejected(self):
        with pytest.raises((ValueError, TypeError)):
            _ = Money.of("100", "ARS") + Money.of("100", "UYU")
