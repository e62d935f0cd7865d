"""
Portfolio Reporting Module

Derives the dashboard statistics (disbursed, outstanding, earned,
profit/loss and counts) from the full loan, payment and customer
collections as of a date. Nothing here is stored; every figure is
recomputed on demand.
"""

from datetime import date
from dataclasses import dataclass, fields
from typing import Dict, List, Any, Iterable

from .currency import Money
from .dates import DateLike, to_date
from .customers import Customer
from .interest import InterestType, accrued_interest
from .loans import Loan, LoanStatus
from .payments import Payment


@dataclass(frozen=True)
class PortfolioStats:
    """Aggregate figures for the whole book as of one date"""
    as_of_date: date

    total_principal_disbursed: Money
    total_outstanding_principal: Money
    total_interest_earned: Money
    total_outstanding_interest: Money
    total_profit: Money
    written_off_principal: Money
    net_profit_loss: Money
    total_forgiven_principal: Money

    total_loans: int
    active_loans: int
    closed_loans: int
    defaulted_loans: int
    daily_loans: int
    monthly_loans: int
    overdue_loans: int

    total_customers: int
    active_customers: int

    total_payments: int
    total_amount_received: Money
    today_payments: int
    today_amount: Money

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Money):
                value = str(value)
            elif isinstance(value, date):
                value = value.isoformat()
            result[f.name] = value
        return result


def _paise(amounts: Iterable[Money]) -> int:
    return sum(m.minor_units for m in amounts)


def _outstanding_interest(loan: Loan, as_of: date) -> int:
    # A loan disbursed (or last reduced) after the reporting date has nothing due yet
    if as_of < loan.accrual_start_date:
        return 0
    return accrued_interest(loan, as_of).minor_units


def summarize(
    loans: List[Loan],
    payments: List[Payment],
    customers: List[Customer],
    as_of_date: DateLike
) -> PortfolioStats:
    """
    Compute portfolio statistics over complete collections

    Sums run in integer paise. Empty collections give zeroed stats.
    Defaulted principal is treated as a realized loss against interest
    income; principal forgiven by an explicit close is reported on its own
    and does not reduce net_profit_loss.
    """
    as_of = to_date(as_of_date)

    active = [loan for loan in loans if loan.status == LoanStatus.ACTIVE]
    closed = [loan for loan in loans if loan.status == LoanStatus.CLOSED]
    defaulted = [loan for loan in loans if loan.status == LoanStatus.DEFAULTED]
    completed = [p for p in payments if p.is_completed]
    today = [p for p in completed if p.payment_date == as_of]

    interest_earned = _paise(p.interest_paid for p in completed)
    written_off = _paise(loan.outstanding_principal for loan in defaulted)

    return PortfolioStats(
        as_of_date=as_of,
        total_principal_disbursed=Money.from_minor_units(_paise(loan.principal_amount for loan in loans)),
        total_outstanding_principal=Money.from_minor_units(_paise(loan.outstanding_principal for loan in active)),
        total_interest_earned=Money.from_minor_units(interest_earned),
        total_outstanding_interest=Money.from_minor_units(
            sum(_outstanding_interest(loan, as_of) for loan in active)
        ),
        total_profit=Money.from_minor_units(interest_earned),
        written_off_principal=Money.from_minor_units(written_off),
        net_profit_loss=Money.from_minor_units(interest_earned - written_off),
        total_forgiven_principal=Money.from_minor_units(_paise(loan.forgiven_principal for loan in closed)),
        total_loans=len(loans),
        active_loans=len(active),
        closed_loans=len(closed),
        defaulted_loans=len(defaulted),
        daily_loans=sum(1 for loan in loans if loan.interest_type == InterestType.DAILY),
        monthly_loans=sum(1 for loan in loans if loan.interest_type == InterestType.MONTHLY),
        overdue_loans=sum(1 for loan in active if as_of > loan.due_date),
        total_customers=len(customers),
        active_customers=sum(1 for c in customers if c.is_active),
        total_payments=len(payments),
        total_amount_received=Money.from_minor_units(_paise(p.amount for p in completed)),
        today_payments=len(today),
        today_amount=Money.from_minor_units(_paise(p.amount for p in today))
    )


class PortfolioAggregator:
    """
    Loads the full collections and serves the three dashboard overviews
    """

    def __init__(self, customer_manager, loan_manager, payment_processor):
        self.customer_manager = customer_manager
        self.loan_manager = loan_manager
        self.payment_processor = payment_processor

    def summarize(self, as_of_date: DateLike) -> PortfolioStats:
        return summarize(
            self.loan_manager.get_all_loans(),
            self.payment_processor.get_all_payments(),
            self.customer_manager.get_all_customers(),
            as_of_date
        )

    def loan_stats(self, as_of_date: DateLike) -> Dict[str, Any]:
        stats = self.summarize(as_of_date)
        return {
            "totalPrincipalDisbursed": str(stats.total_principal_disbursed),
            "totalOutstandingPrincipal": str(stats.total_outstanding_principal),
            "totalInterestEarned": str(stats.total_interest_earned),
            "totalOutstandingInterest": str(stats.total_outstanding_interest),
            "totalProfit": str(stats.total_profit),
            "netProfitLoss": str(stats.net_profit_loss),
            "writtenOffPrincipal": str(stats.written_off_principal),
            "totalForgivenPrincipal": str(stats.total_forgiven_principal),
            "totalLoans": stats.total_loans,
            "activeLoans": stats.active_loans,
            "closedLoans": stats.closed_loans,
            "defaultedLoans": stats.defaulted_loans,
            "dailyLoans": stats.daily_loans,
            "monthlyLoans": stats.monthly_loans,
            "overdueLoans": stats.overdue_loans,
        }

    def customer_stats(self, as_of_date: DateLike) -> Dict[str, Any]:
        stats = self.summarize(as_of_date)
        return {
            "totalCustomers": stats.total_customers,
            "activeCustomers": stats.active_customers,
        }

    def payment_stats(self, as_of_date: DateLike) -> Dict[str, Any]:
        stats = self.summarize(as_of_date)
        return {
            "totalPayments": stats.total_payments,
            "totalAmountReceived": str(stats.total_amount_received),
            "totalInterestEarned": str(stats.total_interest_earned),
            "todayPayments": stats.today_payments,
            "todayAmount": str(stats.today_amount),
        }
