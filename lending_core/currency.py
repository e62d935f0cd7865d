"""
Money Module

Fixed two-decimal money type for rupee amounts. NEVER uses float for
monetary values: amounts are Decimal, and summation/allocation work on
integer paise (minor units) and convert back at the boundary.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from dataclasses import dataclass
from typing import Iterable, Optional, Union
import re

from .errors import InvalidAmountError, ValidationError

# Set global decimal context for financial precision
getcontext().prec = 28

CURRENCY_CODE = "INR"
PRECISION = 2
MINOR_UNITS_PER_UNIT = 10 ** PRECISION
QUANTUM = Decimal('0.01')
# Largest amount accepted from callers; keeps every quantize inside prec
MAX_AMOUNT = Decimal('1e15')


def round_money(value: Decimal) -> Decimal:
    """Round a Decimal to paise using ROUND_HALF_UP"""
    return value.quantize(QUANTUM, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation with two-decimal precision.
    All monetary values MUST use this class or raw Decimal.
    """
    amount: Decimal

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            # Go through str() so a float never leaks binary noise into the amount
            try:
                object.__setattr__(self, 'amount', Decimal(str(self.amount)))
            except InvalidOperation:
                raise InvalidAmountError(f"Cannot convert {self.amount!r} to a monetary amount")
        if not self.amount.is_finite():
            raise InvalidAmountError(f"Monetary amount must be finite, got {self.amount}")
        try:
            object.__setattr__(self, 'amount', round_money(self.amount))
        except InvalidOperation:
            raise InvalidAmountError(f"Amount {self.amount} is too large")

    @classmethod
    def zero(cls) -> 'Money':
        return cls(Decimal('0'))

    @classmethod
    def from_minor_units(cls, minor_units: int) -> 'Money':
        """Build Money from an integer count of paise"""
        return cls(Decimal(int(minor_units)) / MINOR_UNITS_PER_UNIT)

    @property
    def minor_units(self) -> int:
        """Amount as an integer count of paise"""
        return int(self.amount * MINOR_UNITS_PER_UNIT)

    def __add__(self, other: 'Money') -> 'Money':
        return Money.from_minor_units(self.minor_units + other.minor_units)

    def __sub__(self, other: 'Money') -> 'Money':
        return Money.from_minor_units(self.minor_units - other.minor_units)

    def __mul__(self, multiplier: Decimal) -> 'Money':
        if not isinstance(multiplier, Decimal):
            multiplier = Decimal(str(multiplier))
        return Money(self.amount * multiplier)

    def __neg__(self) -> 'Money':
        return Money(-self.amount)

    def __abs__(self) -> 'Money':
        return Money(abs(self.amount))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return False
        return self.amount == other.amount

    def __hash__(self) -> int:
        return hash(self.amount)

    def __lt__(self, other: 'Money') -> bool:
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        return self.amount >= other.amount

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.amount > Decimal('0')

    def is_negative(self) -> bool:
        """Check if amount is negative"""
        return self.amount < Decimal('0')

    def to_string(self) -> str:
        """Format for display"""
        return f"{CURRENCY_CODE} {self.amount:,.{PRECISION}f}"

    def __str__(self) -> str:
        return f"{self.amount:.{PRECISION}f}"


def sum_money(amounts: Iterable[Money]) -> Money:
    """Sum Money values in integer paise"""
    return Money.from_minor_units(sum(m.minor_units for m in amounts))


def min_money(first: Money, second: Money) -> Money:
    return first if first <= second else second


def to_money(value: Union[Money, Decimal, int, str], field: Optional[str] = None) -> Money:
    """
    Coerce a caller-supplied amount into Money

    Unlike Money itself this never rounds: an amount with fractions of a
    paisa is rejected so the stored figure is exactly what was received.

    Raises:
        ValidationError: If the value is not a finite number, is too large
            or has more than two decimal places
    """
    if isinstance(value, Money):
        return value
    if isinstance(value, float):
        raise ValidationError("Monetary values must be passed as Decimal or string, not float", field=field)
    try:
        if isinstance(value, str):
            amount = decimal_from_string(value)
        else:
            amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Cannot convert {value!r} to a monetary amount", field=field)
    if not amount.is_finite():
        raise ValidationError(f"Cannot convert {value!r} to a monetary amount", field=field)
    if abs(amount) >= MAX_AMOUNT:
        raise ValidationError(f"Amount {value} exceeds the supported maximum", field=field)
    if amount != round_money(amount):
        raise ValidationError(f"Amount {value} has more than {PRECISION} decimal places", field=field)
    return Money(amount)


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Args:
        value: String representation of number, e.g. "1,50,000.50" or "₹ 250"

    Returns:
        Decimal value

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    # Remove currency symbols and whitespace; commas are digit grouping
    clean_value = re.sub(r'[^\d.eE\-+]', '', value.strip().replace(',', ''))

    try:
        result = Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    if not result.is_finite():
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    return result
