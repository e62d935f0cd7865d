"""
Test suite for the money module

Amounts are two-decimal rupees; arithmetic must be exact with no float drift.
"""

import pytest
from decimal import Decimal

from lending_core.currency import (
    Money, round_money, sum_money, min_money, to_money, decimal_from_string
)
from lending_core.errors import InvalidAmountError, ValidationError


class TestMoney:
    """Test Money construction and arithmetic"""

    def test_quantizes_to_paise(self):
        """Amounts round half up to two places"""
        assert Money(Decimal('10.005')).amount == Decimal('10.01')
        assert Money(Decimal('10.004')).amount == Decimal('10.00')
        assert Money(Decimal('-1.005')).amount == Decimal('-1.01')

    def test_float_goes_through_str(self):
        """A float never leaks binary noise into the amount"""
        assert Money(0.1).amount == Decimal('0.10')

    def test_add_and_subtract_are_exact(self):
        total = Money(Decimal('0.10')) + Money(Decimal('0.20'))
        assert total == Money(Decimal('0.30'))
        assert Money(Decimal('100.00')) - Money(Decimal('99.99')) == Money(Decimal('0.01'))

    def test_minor_units_round_trip(self):
        money = Money(Decimal('1234.56'))
        assert money.minor_units == 123456
        assert Money.from_minor_units(123456) == money
        assert Money.from_minor_units(-5).amount == Decimal('-0.05')

    def test_comparisons(self):
        small = Money(Decimal('5'))
        large = Money(Decimal('50'))
        assert small < large
        assert large >= small
        assert min_money(small, large) is small
        assert Money.zero().is_zero()
        assert large.is_positive()
        assert (-large).is_negative()

    def test_multiply_by_decimal(self):
        assert Money(Decimal('10000')) * Decimal('0.001') == Money(Decimal('10.00'))

    def test_display_formats(self):
        money = Money(Decimal('150000'))
        assert str(money) == "150000.00"
        assert money.to_string() == "INR 150,000.00"

    def test_not_equal_to_plain_decimal(self):
        assert Money(Decimal('1')) != Decimal('1')


class TestHelpers:
    """Test summation and parsing helpers"""

    def test_sum_money_empty(self):
        assert sum_money([]) == Money.zero()

    def test_sum_money_many_small_amounts(self):
        """Summing in paise gives an exact total"""
        total = sum_money(Money(Decimal('0.01')) for _ in range(1000))
        assert total == Money(Decimal('10.00'))

    def test_round_money(self):
        assert round_money(Decimal('2.675')) == Decimal('2.68')

    def test_to_money_accepts_strings_and_decimals(self):
        assert to_money("1,50,000.50") == Money(Decimal('150000.50'))
        assert to_money(Decimal('42')) == Money(Decimal('42.00'))
        assert to_money(7) == Money(Decimal('7.00'))

    def test_to_money_rejects_float(self):
        with pytest.raises(ValueError, match="not float"):
            to_money(1.5)

    def test_to_money_rejects_non_finite(self):
        with pytest.raises(ValueError):
            to_money(Decimal('NaN'))

    def test_decimal_from_string_strips_symbols(self):
        assert decimal_from_string("₹ 250") == Decimal('250')
        assert decimal_from_string("-1,000.25") == Decimal('-1000.25')

    def test_decimal_from_string_invalid(self):
        with pytest.raises(ValueError):
            decimal_from_string("")
        with pytest.raises(ValueError):
            decimal_from_string("abc")

    def test_to_money_rejects_fractional_paise(self):
        with pytest.raises(ValidationError) as exc_info:
            to_money(Decimal('150.005'), field="amount")
        assert exc_info.value.field == "amount"
        assert to_money(Decimal('150.500')) == Money(Decimal('150.50'))

    def test_to_money_rejects_huge_amounts(self):
        with pytest.raises(ValidationError):
            to_money(Decimal('1e30'))
        with pytest.raises(ValidationError):
            to_money("1e30")

    def test_money_out_of_range_is_invalid_amount(self):
        with pytest.raises(InvalidAmountError):
            Money(Decimal('1e30'))
        with pytest.raises(InvalidAmountError):
            Money(Decimal('Infinity'))
