"""
Interest Accrual Module

Simple-interest accrual on a loan's outstanding principal for the two
regimes the business lends under:

- DAILY ("vatti"): rate is a percentage per elapsed day.
- MONTHLY: rate is a percentage per completed calendar month. A partial
  month accrues nothing until it completes; there is no proration.

Interest always runs from the accrual anchor (disbursement, or the date of
the last payment that reduced principal) and is recomputed from scratch on
every call. Nothing is compounded or cached.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .currency import Money
from .dates import DateLike, to_date, days_between, completed_months_between
from .errors import InvalidDateError

if TYPE_CHECKING:
    from .loans import Loan


class InterestType(Enum):
    """Interest regimes"""
    DAILY = "daily"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class InterestCalculation:
    """Breakdown of the interest due on a loan as of one date"""
    as_of_date: date
    accrual_start_date: date
    accrual_end_date: date       # as_of_date, or the default date for defaulted loans
    days_elapsed: int
    months_elapsed: int
    gross_interest: Money        # accrued since the anchor, before interest already paid
    interest_paid: Money         # paid against the current accrual window
    interest_due: Money


def calculate_interest(loan: 'Loan', as_of_date: DateLike) -> InterestCalculation:
    """
    Work out the interest owed on a loan as of a date

    Raises:
        InvalidDateError: If as_of_date precedes disbursement or the
            current accrual anchor
    """
    as_of = to_date(as_of_date)
    anchor = loan.accrual_start_date

    if as_of < loan.disbursement_date:
        raise InvalidDateError(
            f"As-of date {as_of.isoformat()} is before disbursement on "
            f"{loan.disbursement_date.isoformat()}"
        )
    if as_of < anchor:
        raise InvalidDateError(
            f"As-of date {as_of.isoformat()} is before the last principal payment on "
            f"{anchor.isoformat()}"
        )

    if loan.is_closed:
        return InterestCalculation(
            as_of_date=as_of,
            accrual_start_date=anchor,
            accrual_end_date=anchor,
            days_elapsed=0,
            months_elapsed=0,
            gross_interest=Money.zero(),
            interest_paid=Money.zero(),
            interest_due=Money.zero()
        )

    # Defaulted loans stop accruing on the default date
    end = as_of
    if loan.defaulted_date and loan.defaulted_date < end:
        end = max(loan.defaulted_date, anchor)

    days = days_between(anchor, end)
    months = completed_months_between(anchor, end)

    if loan.interest_type == InterestType.DAILY:
        periods = days
    else:
        periods = months

    # Money rounds once to paise, half up
    gross = Money(loan.outstanding_principal.amount * loan.interest_rate / Decimal('100') * periods)
    paid = loan.interest_paid_since_anchor
    due = gross - paid
    if due.is_negative():
        due = Money.zero()

    return InterestCalculation(
        as_of_date=as_of,
        accrual_start_date=anchor,
        accrual_end_date=end,
        days_elapsed=days,
        months_elapsed=months,
        gross_interest=gross,
        interest_paid=paid,
        interest_due=due
    )


def accrued_interest(loan: 'Loan', as_of_date: DateLike) -> Money:
    """Interest accrued but unpaid on a loan as of a date"""
    return calculate_interest(loan, as_of_date).interest_due
