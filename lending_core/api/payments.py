"""
Payment endpoints
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from .system import LendingSystem, get_lending_system, page_limit
from .errors import http_error
from .schemas import CreatePaymentRequest, UpdatePaymentRequest, payment_response, loan_response
from ..errors import LendingError
from ..payments import PaymentMethod


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_payment(
    request: CreatePaymentRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Apply a repayment, interest first"""
    try:
        payment = system.payment_processor.apply_payment(
            loan_id=request.loan_id,
            amount=request.amount,
            payment_date=request.payment_date or date.today(),
            payment_method=request.payment_method,
            transaction_reference=request.transaction_reference,
            notes=request.notes
        )
    except LendingError as e:
        raise http_error(e)

    loan = system.loan_manager.require_loan(payment.loan_id)
    body = payment_response(payment, system.customer_manager.get_customer(payment.customer_id))
    body["loanStatus"] = loan.status.value
    body["outstandingPrincipal"] = str(loan.outstanding_principal)
    return {"success": True, "data": body}


@router.get("")
async def list_payments(
    loan_id: Optional[str] = Query(None, alias="loanId"),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    payment_method: Optional[PaymentMethod] = Query(None, alias="paymentMethod"),
    search: Optional[str] = None,
    limit: Optional[int] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """List payments, most recent first"""
    payments = system.payment_processor.list_payments(
        loan_id=loan_id,
        customer_id=customer_id,
        payment_method=payment_method,
        search=search,
        limit=page_limit(limit)
    )
    customers = {c.id: c for c in system.customer_manager.get_all_customers()}
    return {
        "success": True,
        "data": [payment_response(p, customers.get(p.customer_id)) for p in payments]
    }


@router.get("/stats/overview")
async def payment_stats(
    as_of_date: Optional[str] = Query(None, alias="asOfDate"),
    system: LendingSystem = Depends(get_lending_system)
):
    """Collection figures for the dashboard"""
    try:
        stats = system.aggregator.payment_stats(as_of_date or date.today())
    except LendingError as e:
        raise http_error(e)
    return {"success": True, "data": stats}


@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Get payment by ID"""
    try:
        payment = system.payment_processor.require_payment(payment_id)
    except LendingError as e:
        raise http_error(e)

    customer = system.customer_manager.get_customer(payment.customer_id)
    return {"success": True, "data": payment_response(payment, customer)}


@router.put("/{payment_id}")
async def update_payment(
    payment_id: str,
    request: UpdatePaymentRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Edit payment method, reference or notes"""
    try:
        payment = system.payment_processor.update_payment(
            payment_id,
            payment_method=request.payment_method,
            transaction_reference=request.transaction_reference,
            notes=request.notes
        )
    except LendingError as e:
        raise http_error(e)

    return {"success": True, "data": payment_response(payment)}


@router.delete("/{payment_id}")
async def reverse_payment(
    payment_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Reverse the latest payment on a loan"""
    try:
        loan = system.payment_processor.reverse_payment(payment_id)
    except LendingError as e:
        raise http_error(e)

    return {"success": True, "data": {"paymentId": payment_id, "reversed": True, "loan": loan_response(loan)}}
