"""
Loan endpoints
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from .system import LendingSystem, get_lending_system, page_limit
from .errors import http_error
from .schemas import (
    CreateLoanRequest,
    UpdateLoanRequest,
    CalculateLoanRequest,
    CloseLoanRequest,
    DefaultLoanRequest,
    loan_response,
    calculation_response,
    payment_response
)
from ..errors import LendingError
from ..customers import Customer
from ..interest import InterestType
from ..loans import Loan, LoanStatus


router = APIRouter()


def _current_view(system: LendingSystem, loan: Loan, customer: Optional[Customer] = None) -> dict:
    """Loan body with today's interest, when today is inside the accrual window"""
    today = date.today()
    if today < loan.accrual_start_date:
        return loan_response(loan, customer=customer)
    return loan_response(loan, system.loan_manager.calculate_as_of(loan, today), customer=customer)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Record a disbursed loan"""
    try:
        loan = system.loan_manager.create_loan(
            customer_id=request.customer_id,
            principal_amount=request.principal_amount,
            interest_type=request.interest_type,
            interest_rate=request.interest_rate,
            disbursement_date=request.disbursement_date,
            due_date=request.due_date,
            notes=request.notes
        )
    except LendingError as e:
        raise http_error(e)

    return {"success": True, "data": loan_response(loan)}


@router.get("")
async def list_loans(
    status_filter: Optional[LoanStatus] = Query(None, alias="status"),
    interest_type: Optional[InterestType] = Query(None, alias="interestType"),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    search: Optional[str] = None,
    limit: Optional[int] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """List loans, newest first"""
    loans = system.loan_manager.list_loans(
        status=status_filter,
        interest_type=interest_type,
        customer_id=customer_id,
        search=search,
        limit=page_limit(limit)
    )
    customers = {c.id: c for c in system.customer_manager.get_all_customers()}
    return {
        "success": True,
        "data": [_current_view(system, loan, customers.get(loan.customer_id)) for loan in loans]
    }


@router.get("/stats/overview")
async def loan_stats(
    as_of_date: Optional[str] = Query(None, alias="asOfDate"),
    system: LendingSystem = Depends(get_lending_system)
):
    """Portfolio figures for the dashboard"""
    try:
        stats = system.aggregator.loan_stats(as_of_date or date.today())
    except LendingError as e:
        raise http_error(e)
    return {"success": True, "data": stats}


@router.get("/{loan_id}")
async def get_loan(
    loan_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Get a loan with its payments"""
    try:
        loan = system.loan_manager.require_loan(loan_id)
    except LendingError as e:
        raise http_error(e)

    customer = system.customer_manager.get_customer(loan.customer_id)
    payments = system.loan_manager.get_loan_payments(loan_id)
    return {
        "success": True,
        "data": {
            "loan": _current_view(system, loan, customer),
            "payments": [payment_response(p, customer) for p in payments]
        }
    }


@router.put("/{loan_id}")
async def update_loan(
    loan_id: str,
    request: UpdateLoanRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Edit loan notes or due date"""
    try:
        loan = system.loan_manager.update_loan(
            loan_id, notes=request.notes, due_date=request.due_date
        )
    except LendingError as e:
        raise http_error(e)

    return {"success": True, "data": loan_response(loan)}


@router.post("/{loan_id}/calculate")
async def calculate_loan(
    loan_id: str,
    request: CalculateLoanRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Preview outstanding principal and interest as of a date"""
    try:
        calculation = system.loan_manager.calculate_for_loan(
            loan_id, request.as_of_date or date.today()
        )
    except LendingError as e:
        raise http_error(e)

    return {"success": True, "data": calculation_response(calculation)}


@router.put("/{loan_id}/close")
async def close_loan(
    loan_id: str,
    request: Optional[CloseLoanRequest] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """Close a loan, forgiving the remaining balance"""
    close_date = request.close_date if request and request.close_date else date.today()
    try:
        loan = system.loan_manager.close_loan(loan_id, close_date)
    except LendingError as e:
        raise http_error(e)

    return {"success": True, "data": loan_response(loan)}


@router.put("/{loan_id}/default")
async def mark_defaulted(
    loan_id: str,
    request: Optional[DefaultLoanRequest] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """Mark a loan as defaulted"""
    default_date = request.default_date if request and request.default_date else date.today()
    try:
        loan = system.loan_manager.mark_defaulted(loan_id, default_date)
    except LendingError as e:
        raise http_error(e)

    return {"success": True, "data": loan_response(loan)}
