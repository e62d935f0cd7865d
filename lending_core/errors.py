"""
Lending Errors

Local validation failures raised by the engine. All of them are caller
input errors: none is transient and none should be retried automatically.
"""

from typing import Optional


class LendingError(ValueError):
    """Base exception for all lending engine errors."""


class ValidationError(LendingError):
    """Raised when a field fails its format or range check."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidDateError(LendingError):
    """Raised when a date precedes the loan's disbursement or accrual anchor."""


class InvalidAmountError(LendingError):
    """Raised when a payment amount is zero or negative."""


class LoanNotActiveError(LendingError):
    """Raised when an operation targets a closed or defaulted loan."""

    def __init__(self, loan_id: str, status: str):
        super().__init__(f"Loan {loan_id} is {status}; only active loans accept this operation")
        self.loan_id = loan_id
        self.status = status


class OverpaymentError(LendingError):
    """Raised when a payment exceeds the total outstanding as of its date."""

    def __init__(self, amount, max_allowed):
        super().__init__(
            f"Payment of {amount} exceeds total outstanding of {max_allowed}"
        )
        self.amount = amount
        self.max_allowed = max_allowed


class CustomerHasActiveLoansError(LendingError):
    """Raised when deleting a customer who still has active loans."""

    def __init__(self, customer_id: str, active_loans: int):
        super().__init__(
            f"Customer {customer_id} has {active_loans} active loan(s) and cannot be deleted"
        )
        self.customer_id = customer_id
        self.active_loans = active_loans


class ReversalNotAllowedError(LendingError):
    """Raised when a payment cannot be reversed (only the latest one can)."""


class NotFoundError(LendingError):
    """Raised when a referenced record does not exist."""


class CustomerNotFoundError(NotFoundError):
    pass


class LoanNotFoundError(NotFoundError):
    pass


class PaymentNotFoundError(NotFoundError):
    pass
