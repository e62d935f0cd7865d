"""
Pydantic schemas for API requests and the camelCase response bodies
"""

from decimal import Decimal
from typing import Dict, Optional, Any
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from ..currency import Money
from ..customers import Address, Customer, CustomerStatus
from ..interest import InterestType
from ..loans import Loan, LoanCalculation
from ..payments import Payment, PaymentMethod


class CamelModel(BaseModel):
    """Accepts the dashboard's camelCase field names (snake_case also works)"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "forbid"


class AddressModel(CamelModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None

    def to_address(self) -> Address:
        return Address(
            street=self.street,
            city=self.city,
            state=self.state,
            pincode=self.pincode
        )


# Customer schemas
class CreateCustomerRequest(CamelModel):
    name: str
    phone: str
    email: Optional[str] = None
    aadhar_number: Optional[str] = None
    pan_number: Optional[str] = None
    address: Optional[AddressModel] = None
    notes: Optional[str] = None


class UpdateCustomerRequest(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    aadhar_number: Optional[str] = None
    pan_number: Optional[str] = None
    address: Optional[AddressModel] = None
    status: Optional[CustomerStatus] = None
    notes: Optional[str] = None


# Loan schemas
class CreateLoanRequest(CamelModel):
    customer_id: str
    principal_amount: Decimal = Field(..., description="Amount disbursed, in rupees")
    interest_type: InterestType
    interest_rate: Decimal = Field(..., description="Percent per day (daily) or per month (monthly)")
    disbursement_date: str = Field(..., description="ISO date")
    due_date: str = Field(..., description="ISO date")
    notes: Optional[str] = None


class UpdateLoanRequest(CamelModel):
    notes: Optional[str] = None
    due_date: Optional[str] = None


class CalculateLoanRequest(CamelModel):
    as_of_date: Optional[str] = Field(None, description="ISO date; defaults to today")


class CloseLoanRequest(CamelModel):
    close_date: Optional[str] = Field(None, description="ISO date; defaults to today")


class DefaultLoanRequest(CamelModel):
    default_date: Optional[str] = Field(None, description="ISO date; defaults to today")


# Payment schemas
class CreatePaymentRequest(CamelModel):
    loan_id: str
    amount: Decimal
    payment_date: Optional[str] = Field(None, description="ISO date; defaults to today")
    payment_method: PaymentMethod = PaymentMethod.CASH
    transaction_reference: Optional[str] = None
    notes: Optional[str] = None


class UpdatePaymentRequest(CamelModel):
    payment_method: Optional[PaymentMethod] = None
    transaction_reference: Optional[str] = None
    notes: Optional[str] = None


def _money(value: Optional[Money]) -> Optional[str]:
    return str(value) if value is not None else None


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def customer_response(customer: Customer) -> Dict[str, Any]:
    address = customer.address.to_dict()
    return {
        "customerId": customer.id,
        "name": customer.name,
        "phone": customer.phone,
        "email": customer.email,
        "aadharNumber": customer.aadhar_number,
        "panNumber": customer.pan_number,
        "address": address,
        "status": customer.status.value,
        "notes": customer.notes,
        "activeLoans": customer.active_loans,
        "totalLoans": customer.total_loans,
        "createdAt": _iso(customer.created_at),
        "updatedAt": _iso(customer.updated_at)
    }


def customer_summary(customer: Optional[Customer]) -> Optional[Dict[str, Any]]:
    """The slice of a customer embedded in loan and payment bodies"""
    if customer is None:
        return None
    return {
        "customerId": customer.id,
        "name": customer.name,
        "phone": customer.phone
    }


def loan_response(
    loan: Loan,
    calculation: Optional[LoanCalculation] = None,
    customer: Optional[Customer] = None
) -> Dict[str, Any]:
    body = {
        "loanId": loan.id,
        "customerId": loan.customer_id,
        "customer": customer_summary(customer),
        "principalAmount": _money(loan.principal_amount),
        "interestType": loan.interest_type.value,
        "interestRate": str(loan.interest_rate),
        "disbursementDate": _iso(loan.disbursement_date),
        "dueDate": _iso(loan.due_date),
        "outstandingPrincipal": _money(loan.outstanding_principal),
        "status": loan.status.value,
        "accrualStartDate": _iso(loan.accrual_start_date),
        "totalPrincipalPaid": _money(loan.total_principal_paid),
        "totalInterestPaid": _money(loan.total_interest_paid),
        "lastPaymentDate": _iso(loan.last_payment_date),
        "closedDate": _iso(loan.closed_date),
        "defaultedDate": _iso(loan.defaulted_date),
        "forgivenPrincipal": _money(loan.forgiven_principal),
        "forgivenInterest": _money(loan.forgiven_interest),
        "notes": loan.notes,
        "createdAt": _iso(loan.created_at),
        "updatedAt": _iso(loan.updated_at)
    }
    if calculation is not None:
        body["currentInterest"] = _money(calculation.calculated_interest)
        body["totalOutstanding"] = _money(calculation.total_outstanding)
        body["atRisk"] = calculation.at_risk
        body["isOverdue"] = calculation.is_overdue
    return body


def calculation_response(calculation: LoanCalculation) -> Dict[str, Any]:
    return {
        "loanId": calculation.loan_id,
        "asOfDate": _iso(calculation.as_of_date),
        "status": calculation.status.value,
        "outstandingPrincipal": _money(calculation.outstanding_principal),
        "calculatedInterest": _money(calculation.calculated_interest),
        "totalOutstanding": _money(calculation.total_outstanding),
        "accrualStartDate": _iso(calculation.accrual_start_date),
        "daysElapsed": calculation.days_elapsed,
        "monthsElapsed": calculation.months_elapsed,
        "atRisk": calculation.at_risk,
        "isOverdue": calculation.is_overdue
    }


def payment_response(payment: Payment, customer: Optional[Customer] = None) -> Dict[str, Any]:
    return {
        "paymentId": payment.id,
        "loanId": payment.loan_id,
        "customerId": payment.customer_id,
        "customer": customer_summary(customer),
        "amount": _money(payment.amount),
        "principalPaid": _money(payment.principal_paid),
        "interestPaid": _money(payment.interest_paid),
        "paymentDate": _iso(payment.payment_date),
        "paymentMethod": payment.payment_method.value,
        "status": payment.status.value,
        "transactionReference": payment.transaction_reference,
        "notes": payment.notes,
        "createdAt": _iso(payment.created_at)
    }
