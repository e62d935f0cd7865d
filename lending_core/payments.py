"""
Payment Allocation Module

Splits a repayment between accrued interest and principal (interest first),
records it as an immutable Payment, and updates the loan balance in the
same atomic commit. Reversal is an explicit compensating operation allowed
only for the most recent payment on a loan.
"""

from datetime import datetime, timezone, date
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Any, Union
from enum import Enum
import uuid

from .currency import Money, min_money, to_money
from .dates import DateLike, to_date
from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .interest import accrued_interest
from .loans import Loan, LoanManager, LoanStatus
from .errors import (
    InvalidAmountError, InvalidDateError, LoanNotActiveError, OverpaymentError,
    PaymentNotFoundError, ReversalNotAllowedError
)
from .logging_config import get_logger, log_action


class PaymentMethod(Enum):
    """How the borrower paid"""
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    UPI = "upi"
    CHEQUE = "cheque"
    OTHER = "other"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"


MONEY_FIELDS = ('amount', 'principal_paid', 'interest_paid', 'previous_interest_paid_since_anchor')
DATE_FIELDS = ('payment_date', 'previous_accrual_start_date', 'previous_last_payment_date')


@dataclass
class Payment(StorageRecord):
    """
    Immutable record of one repayment and how it was split.
    The previous_* fields capture the loan state the payment replaced so
    the payment can be reversed.
    """
    loan_id: str
    customer_id: str
    amount: Money
    principal_paid: Money
    interest_paid: Money
    payment_date: date
    payment_method: PaymentMethod = PaymentMethod.CASH
    status: PaymentStatus = PaymentStatus.COMPLETED
    transaction_reference: Optional[str] = None
    notes: Optional[str] = None

    # Reversal bookkeeping
    previous_accrual_start_date: Optional[date] = None
    previous_interest_paid_since_anchor: Money = None
    previous_last_payment_date: Optional[date] = None
    closed_loan: bool = False

    def __post_init__(self):
        if self.previous_interest_paid_since_anchor is None:
            self.previous_interest_paid_since_anchor = Money.zero()
        if self.principal_paid + self.interest_paid != self.amount:
            raise InvalidAmountError(
                f"Split {self.principal_paid} + {self.interest_paid} does not equal amount {self.amount}"
            )

    @property
    def payment_id(self) -> str:
        return self.id

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Payment':
        data = dict(data)
        for name in MONEY_FIELDS:
            if data.get(name) is not None:
                data[name] = Money(Decimal(data[name]))
        for name in DATE_FIELDS:
            if data.get(name):
                data[name] = date.fromisoformat(data[name])
        data['payment_method'] = PaymentMethod(data['payment_method'])
        data['status'] = PaymentStatus(data['status'])
        return super().from_dict(data)


@dataclass(frozen=True)
class PaymentAllocation:
    """How an amount would be split against a loan on a date"""
    as_of_date: date
    amount: Money
    interest_due: Money
    interest_paid: Money
    principal_paid: Money
    remaining_principal: Money
    remaining_interest: Money

    @property
    def closes_loan(self) -> bool:
        return self.remaining_principal.is_zero() and self.remaining_interest.is_zero()


def allocate_payment(loan: Loan, amount: Money, as_of_date: DateLike) -> PaymentAllocation:
    """
    Split a payment between interest and principal, interest first

    Pure: the loan is not modified. All arithmetic is in integer paise so
    interest_paid + principal_paid == amount exactly.

    Raises:
        InvalidAmountError: If amount is not positive
        LoanNotActiveError: If the loan is closed or defaulted
        InvalidDateError: If as_of_date precedes the accrual anchor or the
            loan's last payment
        OverpaymentError: If amount exceeds interest due plus outstanding principal
    """
    if not amount.is_positive():
        raise InvalidAmountError(f"Payment amount must be positive, got {amount}")
    if not loan.is_active:
        raise LoanNotActiveError(loan.id, loan.status.value)

    as_of = to_date(as_of_date)
    if loan.last_payment_date and as_of < loan.last_payment_date:
        raise InvalidDateError(
            f"Payment date {as_of.isoformat()} is before the last payment on "
            f"{loan.last_payment_date.isoformat()}"
        )

    due_interest = accrued_interest(loan, as_of)
    max_allowed = due_interest + loan.outstanding_principal
    if amount > max_allowed:
        raise OverpaymentError(amount, max_allowed)

    interest_paid = min_money(amount, due_interest)
    principal_paid = min_money(amount - interest_paid, loan.outstanding_principal)

    return PaymentAllocation(
        as_of_date=as_of,
        amount=amount,
        interest_due=due_interest,
        interest_paid=interest_paid,
        principal_paid=principal_paid,
        remaining_principal=loan.outstanding_principal - principal_paid,
        remaining_interest=due_interest - interest_paid
    )


def _coerce_method(value: Union[PaymentMethod, str, None]) -> Optional[PaymentMethod]:
    if value is None or isinstance(value, PaymentMethod):
        return value
    return PaymentMethod(value)


class PaymentProcessor:
    """
    Applies, edits, lists and reverses loan payments
    """

    def __init__(
        self,
        storage: StorageInterface,
        loan_manager: LoanManager,
        audit_trail: AuditTrail
    ):
        self.storage = storage
        self.loan_manager = loan_manager
        self.audit_trail = audit_trail
        self.logger = get_logger("lending.payments")

        self.table_name = "payments"

    def apply_payment(
        self,
        loan_id: str,
        amount: Money,
        payment_date: DateLike,
        payment_method: Union[PaymentMethod, str] = PaymentMethod.CASH,
        transaction_reference: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Payment:
        """
        Apply a repayment to a loan

        The loan is re-read under its lock so two payments on one loan can
        never both allocate against the same balance. The payment record
        and the loan update commit together or not at all.

        Raises:
            LoanNotFoundError: If the loan does not exist
            ValidationError: If amount is not an exact rupee-and-paise figure
            InvalidAmountError, LoanNotActiveError, InvalidDateError,
            OverpaymentError: See allocate_payment
        """
        amount = to_money(amount, field="amount")
        method = _coerce_method(payment_method)

        with self.loan_manager.loan_lock(loan_id):
            loan = self.loan_manager.require_loan(loan_id)
            try:
                allocation = allocate_payment(loan, amount, payment_date)
            except (InvalidAmountError, LoanNotActiveError, OverpaymentError, InvalidDateError) as e:
                log_action(self.logger, "warning", "Payment rejected", action="payment_rejected",
                           resource=loan_id, extra={"amount": str(amount), "reason": str(e)})
                raise

            now = datetime.now(timezone.utc)
            payment = Payment(
                id=f"PAY-{uuid.uuid4().hex[:8].upper()}",
                created_at=now,
                updated_at=now,
                loan_id=loan.id,
                customer_id=loan.customer_id,
                amount=allocation.amount,
                principal_paid=allocation.principal_paid,
                interest_paid=allocation.interest_paid,
                payment_date=allocation.as_of_date,
                payment_method=method,
                status=PaymentStatus.COMPLETED,
                transaction_reference=transaction_reference,
                notes=notes,
                previous_accrual_start_date=loan.accrual_start_date,
                previous_interest_paid_since_anchor=loan.interest_paid_since_anchor,
                previous_last_payment_date=loan.last_payment_date,
                closed_loan=allocation.closes_loan
            )

            loan.outstanding_principal = allocation.remaining_principal
            if allocation.principal_paid.is_positive():
                # Interest up to this date is settled; accrual restarts on the reduced principal
                loan.accrual_start_date = allocation.as_of_date
                loan.interest_paid_since_anchor = Money.zero()
            else:
                loan.interest_paid_since_anchor = loan.interest_paid_since_anchor + allocation.interest_paid
            loan.total_principal_paid = loan.total_principal_paid + allocation.principal_paid
            loan.total_interest_paid = loan.total_interest_paid + allocation.interest_paid
            loan.last_payment_date = allocation.as_of_date
            if allocation.closes_loan:
                loan.status = LoanStatus.CLOSED
                loan.closed_date = allocation.as_of_date
            loan.updated_at = now

            with self.loan_manager.customer_manager.customer_lock(loan.customer_id), self.storage.atomic():
                self._save_payment(payment)
                self.loan_manager.save_loan(loan)
                if allocation.closes_loan:
                    self.loan_manager.customer_manager.refresh_loan_counts(loan.customer_id)

        self.audit_trail.log_event(
            event_type=AuditEventType.PAYMENT_APPLIED,
            entity_type="payment",
            entity_id=payment.id,
            metadata={
                "loan_id": loan.id,
                "amount": payment.amount,
                "interest_paid": payment.interest_paid,
                "principal_paid": payment.principal_paid,
                "payment_date": payment.payment_date,
                "outstanding_principal": loan.outstanding_principal
            }
        )
        if allocation.closes_loan:
            self.audit_trail.log_event(
                event_type=AuditEventType.LOAN_CLOSED,
                entity_type="loan",
                entity_id=loan.id,
                metadata={"closed_date": loan.closed_date, "payment_id": payment.id}
            )
        log_action(self.logger, "info", "Payment applied", action="payment_applied", resource=payment.id,
                   extra={
                       "loan_id": loan.id,
                       "amount": str(payment.amount),
                       "interest_paid": str(payment.interest_paid),
                       "principal_paid": str(payment.principal_paid),
                       "loan_closed": allocation.closes_loan
                   })

        return payment

    def reverse_payment(self, payment_id: str) -> Loan:
        """
        Undo the most recent payment on a loan

        Restores the principal, accrual anchor and interest-paid state the
        payment replaced, reopens the loan if the payment closed it, and
        deletes the payment record.

        Raises:
            PaymentNotFoundError: If the payment does not exist
            ReversalNotAllowedError: If a later payment exists or the loan
                was closed or defaulted by something other than this payment
        """
        loan_id = self.require_payment(payment_id).loan_id

        with self.loan_manager.loan_lock(loan_id):
            payment = self.require_payment(payment_id)
            loan = self.loan_manager.require_loan(loan_id)

            latest = self.loan_manager.get_loan_payments(loan.id)[-1]
            if latest.id != payment.id:
                raise ReversalNotAllowedError(
                    f"Only the latest payment on loan {loan.id} can be reversed ({latest.id})"
                )
            if not loan.is_active and not (loan.is_closed and payment.closed_loan):
                raise ReversalNotAllowedError(
                    f"Loan {loan.id} is {loan.status.value}; payment {payment.id} cannot be reversed"
                )

            reopened = loan.is_closed
            loan.outstanding_principal = loan.outstanding_principal + payment.principal_paid
            loan.accrual_start_date = payment.previous_accrual_start_date
            loan.interest_paid_since_anchor = payment.previous_interest_paid_since_anchor
            loan.last_payment_date = payment.previous_last_payment_date
            loan.total_principal_paid = loan.total_principal_paid - payment.principal_paid
            loan.total_interest_paid = loan.total_interest_paid - payment.interest_paid
            if reopened:
                loan.status = LoanStatus.ACTIVE
                loan.closed_date = None
            loan.updated_at = datetime.now(timezone.utc)

            with self.loan_manager.customer_manager.customer_lock(loan.customer_id), self.storage.atomic():
                self.loan_manager.save_loan(loan)
                self.storage.delete(self.table_name, payment.id)
                if reopened:
                    self.loan_manager.customer_manager.refresh_loan_counts(loan.customer_id)

        self.audit_trail.log_event(
            event_type=AuditEventType.PAYMENT_REVERSED,
            entity_type="payment",
            entity_id=payment.id,
            metadata={
                "loan_id": loan.id,
                "amount": payment.amount,
                "interest_paid": payment.interest_paid,
                "principal_paid": payment.principal_paid
            }
        )
        if reopened:
            self.audit_trail.log_event(
                event_type=AuditEventType.LOAN_REOPENED,
                entity_type="loan",
                entity_id=loan.id,
                metadata={"payment_id": payment.id}
            )
        log_action(self.logger, "info", "Payment reversed", action="payment_reversed",
                   resource=payment.id, extra={"loan_id": loan.id, "amount": str(payment.amount)})

        return loan

    def update_payment(
        self,
        payment_id: str,
        payment_method: Union[PaymentMethod, str, None] = None,
        transaction_reference: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Payment:
        """
        Edit the descriptive fields of a payment; amounts and dates are fixed

        The record is re-read under the loan lock so an edit can never
        resurrect a payment that a concurrent reversal has deleted.

        Raises:
            PaymentNotFoundError: If the payment does not exist or was reversed
        """
        loan_id = self.require_payment(payment_id).loan_id
        method = _coerce_method(payment_method)

        with self.loan_manager.loan_lock(loan_id):
            payment = self.require_payment(payment_id)

            changed = {}
            if method is not None:
                payment.payment_method = method
                changed['payment_method'] = method
            if transaction_reference is not None:
                payment.transaction_reference = transaction_reference
                changed['transaction_reference'] = transaction_reference
            if notes is not None:
                payment.notes = notes
                changed['notes'] = notes
            if not changed:
                return payment

            payment.updated_at = datetime.now(timezone.utc)
            with self.storage.atomic():
                self._save_payment(payment)

        self.audit_trail.log_event(
            event_type=AuditEventType.PAYMENT_UPDATED,
            entity_type="payment",
            entity_id=payment_id,
            metadata=changed
        )
        return payment

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        """Get payment by ID"""
        data = self.storage.load(self.table_name, payment_id)
        if data:
            return Payment.from_dict(data)
        return None

    def require_payment(self, payment_id: str) -> Payment:
        payment = self.get_payment(payment_id)
        if not payment:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")
        return payment

    def get_all_payments(self) -> List[Payment]:
        payments = [Payment.from_dict(data) for data in self.storage.load_all(self.table_name)]
        payments.sort(key=lambda p: (p.payment_date, p.created_at))
        return payments

    def list_payments(
        self,
        loan_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        payment_method: Union[PaymentMethod, str, None] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Payment]:
        """
        List payments, most recent first

        search matches payment, loan and transaction reference IDs and the
        customer name.
        """
        filters = {}
        if loan_id:
            filters['loan_id'] = loan_id
        if customer_id:
            filters['customer_id'] = customer_id
        method = _coerce_method(payment_method)
        if method:
            filters['payment_method'] = method.value

        payments = [Payment.from_dict(data) for data in self.storage.find(self.table_name, filters)]
        if search:
            term = search.strip().lower()
            names = {c.id: c.name.lower() for c in self.loan_manager.customer_manager.get_all_customers()}
            payments = [
                p for p in payments
                if term in p.id.lower()
                or term in p.loan_id.lower()
                or term in (p.transaction_reference or "").lower()
                or term in names.get(p.customer_id, "")
            ]
        payments.sort(key=lambda p: (p.payment_date, p.created_at), reverse=True)
        if limit:
            payments = payments[:limit]
        return payments

    def _save_payment(self, payment: Payment) -> None:
        self.storage.save(self.table_name, payment.id, payment.to_dict())
