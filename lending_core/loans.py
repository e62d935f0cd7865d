"""
Loan Module

Handles loan disbursement records, the loan lifecycle (active, closed,
defaulted), per-loan locking, and the side-effect-free "calculate as of
date" preview used before committing a payment.
"""

from decimal import Decimal, InvalidOperation
from datetime import datetime, timezone, date
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Iterator, TYPE_CHECKING
from enum import Enum
from contextlib import contextmanager
import threading
import uuid

from .currency import Money, to_money
from .dates import DateLike, to_date
from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .customers import CustomerManager
from .interest import InterestType, calculate_interest
from .errors import (
    ValidationError, InvalidDateError, LoanNotActiveError, LoanNotFoundError
)
from .logging_config import get_logger, log_action

if TYPE_CHECKING:
    from .payments import Payment


class LoanStatus(Enum):
    """Loan lifecycle states"""
    ACTIVE = "active"          # Accruing interest and accepting payments
    CLOSED = "closed"          # Fully repaid or closed with the balance forgiven
    DEFAULTED = "defaulted"    # Marked uncollectible; accrual frozen at default date


MONEY_FIELDS = (
    'principal_amount', 'outstanding_principal', 'interest_paid_since_anchor',
    'total_principal_paid', 'total_interest_paid', 'forgiven_principal', 'forgiven_interest'
)
DATE_FIELDS = (
    'disbursement_date', 'due_date', 'accrual_start_date', 'last_payment_date',
    'closed_date', 'defaulted_date'
)


@dataclass
class Loan(StorageRecord):
    """Loan with its terms and current balances"""
    customer_id: str
    principal_amount: Money
    interest_type: InterestType
    interest_rate: Decimal              # percent per day (daily) or per month (monthly)
    disbursement_date: date
    due_date: date
    status: LoanStatus = LoanStatus.ACTIVE
    outstanding_principal: Money = None

    # Accrual anchor: disbursement date or date of last principal-reducing payment
    accrual_start_date: Optional[date] = None
    # Interest already paid against the current anchor window
    interest_paid_since_anchor: Money = None

    total_principal_paid: Money = None
    total_interest_paid: Money = None
    last_payment_date: Optional[date] = None
    closed_date: Optional[date] = None
    defaulted_date: Optional[date] = None
    forgiven_principal: Money = None
    forgiven_interest: Money = None
    notes: Optional[str] = None

    def __post_init__(self):
        if self.outstanding_principal is None:
            self.outstanding_principal = self.principal_amount
        if self.accrual_start_date is None:
            self.accrual_start_date = self.disbursement_date
        for name in MONEY_FIELDS:
            if getattr(self, name) is None:
                setattr(self, name, Money.zero())

        if not self.principal_amount.is_positive():
            raise ValidationError("Principal amount must be positive", field="principal_amount")
        if self.interest_rate < Decimal('0'):
            raise ValidationError("Interest rate cannot be negative", field="interest_rate")
        if self.due_date < self.disbursement_date:
            raise ValidationError("Due date cannot be before disbursement date", field="due_date")
        if self.outstanding_principal.is_negative() or self.outstanding_principal > self.principal_amount:
            raise ValidationError(
                f"Outstanding principal {self.outstanding_principal} outside 0..{self.principal_amount}",
                field="outstanding_principal"
            )

    @property
    def loan_id(self) -> str:
        return self.id

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self.status == LoanStatus.CLOSED

    @property
    def is_defaulted(self) -> bool:
        return self.status == LoanStatus.DEFAULTED

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        data = dict(data)
        for name in MONEY_FIELDS:
            if data.get(name) is not None:
                data[name] = Money(Decimal(data[name]))
        for name in DATE_FIELDS:
            if data.get(name):
                data[name] = date.fromisoformat(data[name])
        data['interest_type'] = InterestType(data['interest_type'])
        data['interest_rate'] = Decimal(data['interest_rate'])
        data['status'] = LoanStatus(data['status'])
        return super().from_dict(data)


@dataclass(frozen=True)
class LoanCalculation:
    """
    Computed state of a loan as of a date. This is the only place
    total_outstanding is derived; callers must not re-add the parts.
    """
    loan_id: str
    as_of_date: date
    status: LoanStatus
    outstanding_principal: Money
    calculated_interest: Money
    total_outstanding: Money
    accrual_start_date: date
    days_elapsed: int
    months_elapsed: int
    at_risk: bool
    is_overdue: bool


def _parse_rate(value: Any) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    try:
        rate = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValidationError(f"Invalid interest rate {value!r}", field="interest_rate")
    if not rate.is_finite():
        raise ValidationError(f"Invalid interest rate {value!r}", field="interest_rate")
    return rate


class LoanManager:
    """
    Owns loan records and their state transitions
    """

    def __init__(
        self,
        storage: StorageInterface,
        customer_manager: CustomerManager,
        audit_trail: AuditTrail
    ):
        self.storage = storage
        self.customer_manager = customer_manager
        self.audit_trail = audit_trail
        self.logger = get_logger("lending.loans")

        self.loans_table = "loans"
        self.payments_table = "payments"

        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def loan_lock(self, loan_id: str) -> Iterator[None]:
        """Serialize balance-changing operations on one loan"""
        with self._locks_guard:
            lock = self._locks.setdefault(loan_id, threading.RLock())
        with lock:
            yield

    def create_loan(
        self,
        customer_id: str,
        principal_amount: Money,
        interest_type: InterestType,
        interest_rate: Any,
        disbursement_date: DateLike,
        due_date: DateLike,
        notes: Optional[str] = None
    ) -> Loan:
        """
        Record a disbursed loan

        Raises:
            CustomerNotFoundError: If the customer does not exist
            ValidationError: If the customer is inactive or terms are invalid
        """
        # The customer lock keeps a concurrent delete from orphaning the new loan
        with self.customer_manager.customer_lock(customer_id):
            customer = self.customer_manager.require_customer(customer_id)
            if not customer.is_active:
                raise ValidationError(f"Customer {customer_id} is inactive", field="customer_id")

            now = datetime.now(timezone.utc)
            loan = Loan(
                id=f"LOAN-{uuid.uuid4().hex[:8].upper()}",
                created_at=now,
                updated_at=now,
                customer_id=customer_id,
                principal_amount=to_money(principal_amount, field="principal_amount"),
                interest_type=interest_type,
                interest_rate=_parse_rate(interest_rate),
                disbursement_date=to_date(disbursement_date),
                due_date=to_date(due_date),
                notes=notes
            )

            with self.storage.atomic():
                self.save_loan(loan)
                self.customer_manager.refresh_loan_counts(customer_id)

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_CREATED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={
                "customer_id": customer_id,
                "principal_amount": loan.principal_amount,
                "interest_type": loan.interest_type.value,
                "interest_rate": loan.interest_rate,
                "disbursement_date": loan.disbursement_date,
                "due_date": loan.due_date
            }
        )
        log_action(self.logger, "info", "Loan created", action="loan_created", resource=loan.id,
                   extra={"customer_id": customer_id, "principal_amount": str(loan.principal_amount)})

        return loan

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        data = self.storage.load(self.loans_table, loan_id)
        if data:
            return Loan.from_dict(data)
        return None

    def require_loan(self, loan_id: str) -> Loan:
        loan = self.get_loan(loan_id)
        if not loan:
            raise LoanNotFoundError(f"Loan {loan_id} not found")
        return loan

    def get_all_loans(self) -> List[Loan]:
        loans = [Loan.from_dict(data) for data in self.storage.load_all(self.loans_table)]
        loans.sort(key=lambda loan: loan.created_at)
        return loans

    def get_customer_loans(self, customer_id: str) -> List[Loan]:
        """Get all loans for a customer"""
        loans_data = self.storage.find(self.loans_table, {"customer_id": customer_id})
        loans = [Loan.from_dict(data) for data in loans_data]
        loans.sort(key=lambda loan: loan.created_at)
        return loans

    def list_loans(
        self,
        status: Optional[LoanStatus] = None,
        interest_type: Optional[InterestType] = None,
        customer_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Loan]:
        """List loans, newest first. search matches loan ID or customer name."""
        loans = self.get_customer_loans(customer_id) if customer_id else self.get_all_loans()
        if status:
            loans = [loan for loan in loans if loan.status == status]
        if interest_type:
            loans = [loan for loan in loans if loan.interest_type == interest_type]
        if search:
            term = search.strip().lower()
            names = {c.id: c.name.lower() for c in self.customer_manager.get_all_customers()}
            loans = [
                loan for loan in loans
                if term in loan.id.lower() or term in names.get(loan.customer_id, "")
            ]
        loans.reverse()
        if limit:
            loans = loans[:limit]
        return loans

    def update_loan(
        self,
        loan_id: str,
        notes: Optional[str] = None,
        due_date: Optional[DateLike] = None
    ) -> Loan:
        """
        Edit the non-financial terms of a loan. Principal, rate and
        interest type are fixed once the loan is disbursed.
        """
        with self.loan_lock(loan_id):
            loan = self.require_loan(loan_id)
            changed = {}
            if notes is not None:
                loan.notes = notes
                changed['notes'] = notes
            if due_date is not None:
                new_due = to_date(due_date)
                if new_due < loan.disbursement_date:
                    raise ValidationError("Due date cannot be before disbursement date", field="due_date")
                loan.due_date = new_due
                changed['due_date'] = new_due
            if not changed:
                return loan

            loan.updated_at = datetime.now(timezone.utc)
            self.save_loan(loan)

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_UPDATED,
            entity_type="loan",
            entity_id=loan_id,
            metadata=changed
        )
        return loan

    def get_loan_payments(self, loan_id: str) -> List['Payment']:
        """Payments made on a loan, ordered by payment date"""
        from .payments import Payment

        payments = [
            Payment.from_dict(data)
            for data in self.storage.find(self.payments_table, {"loan_id": loan_id})
        ]
        payments.sort(key=lambda p: (p.payment_date, p.created_at))
        return payments

    def calculate_as_of(self, loan: Loan, as_of_date: DateLike) -> LoanCalculation:
        """
        Preview a loan's balances as of a date without changing anything

        Uses the same accrual as payment allocation, so a preview and a
        payment on the same date always agree.

        Raises:
            InvalidDateError: If the date precedes disbursement or the
                last principal-reducing payment
        """
        interest = calculate_interest(loan, as_of_date)
        as_of = interest.as_of_date

        return LoanCalculation(
            loan_id=loan.id,
            as_of_date=as_of,
            status=loan.status,
            outstanding_principal=loan.outstanding_principal,
            calculated_interest=interest.interest_due,
            total_outstanding=loan.outstanding_principal + interest.interest_due,
            accrual_start_date=interest.accrual_start_date,
            days_elapsed=interest.days_elapsed,
            months_elapsed=interest.months_elapsed,
            at_risk=loan.is_defaulted,
            is_overdue=self.is_overdue(loan, as_of)
        )

    def calculate_for_loan(self, loan_id: str, as_of_date: DateLike) -> LoanCalculation:
        return self.calculate_as_of(self.require_loan(loan_id), as_of_date)

    def is_overdue(self, loan: Loan, as_of_date: DateLike) -> bool:
        """Active loan whose due date has passed"""
        return loan.is_active and to_date(as_of_date) > loan.due_date

    def close_loan(self, loan_id: str, close_date: DateLike) -> Loan:
        """
        Close an active loan, forgiving whatever principal and interest is
        still outstanding on close_date. A fully repaid loan closes itself
        when its last payment is applied.

        Raises:
            LoanNotActiveError: If the loan is already closed or defaulted
            InvalidDateError: If close_date precedes the accrual anchor
        """
        with self.loan_lock(loan_id):
            loan = self.require_loan(loan_id)
            self._require_active(loan)

            calculation = self.calculate_as_of(loan, close_date)
            loan.forgiven_principal = loan.outstanding_principal
            loan.forgiven_interest = calculation.calculated_interest
            loan.outstanding_principal = Money.zero()
            loan.interest_paid_since_anchor = Money.zero()
            loan.accrual_start_date = calculation.as_of_date
            loan.status = LoanStatus.CLOSED
            loan.closed_date = calculation.as_of_date
            loan.updated_at = datetime.now(timezone.utc)

            with self.customer_manager.customer_lock(loan.customer_id), self.storage.atomic():
                self.save_loan(loan)
                self.customer_manager.refresh_loan_counts(loan.customer_id)

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_CLOSED,
            entity_type="loan",
            entity_id=loan_id,
            metadata={
                "closed_date": loan.closed_date,
                "forgiven_principal": loan.forgiven_principal,
                "forgiven_interest": loan.forgiven_interest
            }
        )
        log_action(self.logger, "info", "Loan closed", action="loan_closed", resource=loan_id,
                   extra={"forgiven_principal": str(loan.forgiven_principal)})
        return loan

    def mark_defaulted(self, loan_id: str, default_date: DateLike) -> Loan:
        """
        Mark an active loan as defaulted. The engine does not decide when a
        loan defaults; it accepts the transition and freezes accrual at
        default_date.

        Raises:
            LoanNotActiveError: If the loan is already closed or defaulted
            InvalidDateError: If default_date precedes the accrual anchor
        """
        with self.loan_lock(loan_id):
            loan = self.require_loan(loan_id)
            self._require_active(loan)

            when = to_date(default_date)
            if when < loan.accrual_start_date:
                raise InvalidDateError(
                    f"Default date {when.isoformat()} is before the accrual anchor "
                    f"{loan.accrual_start_date.isoformat()}"
                )

            loan.status = LoanStatus.DEFAULTED
            loan.defaulted_date = when
            loan.updated_at = datetime.now(timezone.utc)

            with self.customer_manager.customer_lock(loan.customer_id), self.storage.atomic():
                self.save_loan(loan)
                self.customer_manager.refresh_loan_counts(loan.customer_id)

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_DEFAULTED,
            entity_type="loan",
            entity_id=loan_id,
            metadata={
                "defaulted_date": when,
                "outstanding_principal": loan.outstanding_principal
            }
        )
        log_action(self.logger, "warning", "Loan marked defaulted", action="loan_defaulted",
                   resource=loan_id, extra={"outstanding_principal": str(loan.outstanding_principal)})
        return loan

    def save_loan(self, loan: Loan) -> None:
        """Persist a loan record; callers hold the loan lock"""
        self.storage.save(self.loans_table, loan.id, loan.to_dict())

    def _require_active(self, loan: Loan) -> None:
        if not loan.is_active:
            log_action(self.logger, "warning", "Operation on inactive loan rejected",
                       action="loan_not_active", resource=loan.id,
                       extra={"status": loan.status.value})
            raise LoanNotActiveError(loan.id, loan.status.value)
