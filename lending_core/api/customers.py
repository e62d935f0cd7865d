"""
Customer management endpoints
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from .system import LendingSystem, get_lending_system, page_limit
from .errors import http_error
from .schemas import CreateCustomerRequest, UpdateCustomerRequest, customer_response
from ..customers import CustomerStatus
from ..errors import LendingError


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_customer(
    request: CreateCustomerRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Onboard a new customer"""
    try:
        customer = system.customer_manager.create_customer(
            name=request.name,
            phone=request.phone,
            email=request.email,
            aadhar_number=request.aadhar_number,
            pan_number=request.pan_number,
            address=request.address.to_address() if request.address else None,
            notes=request.notes
        )
    except LendingError as e:
        raise http_error(e)

    return {"success": True, "data": customer_response(customer)}


@router.get("")
async def list_customers(
    search: Optional[str] = None,
    status_filter: Optional[CustomerStatus] = Query(None, alias="status"),
    limit: Optional[int] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """List customers, newest first"""
    customers = system.customer_manager.list_customers(
        search=search, status=status_filter, limit=page_limit(limit)
    )
    return {"success": True, "data": [customer_response(c) for c in customers]}


@router.get("/stats/overview")
async def customer_stats(
    as_of_date: Optional[str] = Query(None, alias="asOfDate"),
    system: LendingSystem = Depends(get_lending_system)
):
    """Customer counts for the dashboard"""
    try:
        stats = system.aggregator.customer_stats(as_of_date or date.today())
    except LendingError as e:
        raise http_error(e)
    return {"success": True, "data": stats}


@router.get("/{customer_id}")
async def get_customer(
    customer_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Get a customer with their loans"""
    try:
        customer = system.customer_manager.require_customer(customer_id)
    except LendingError as e:
        raise http_error(e)

    loans = system.loan_manager.get_customer_loans(customer_id)
    body = customer_response(customer)
    body["loans"] = [
        {"loanId": loan.id, "status": loan.status.value, "principalAmount": str(loan.principal_amount)}
        for loan in loans
    ]
    return {"success": True, "data": body}


@router.put("/{customer_id}")
async def update_customer(
    customer_id: str,
    request: UpdateCustomerRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Update customer information"""
    changes = request.dict(exclude_unset=True)
    if request.address is not None:
        changes["address"] = request.address.to_address()
    if request.status is not None:
        changes["status"] = request.status

    try:
        customer = system.customer_manager.update_customer(customer_id, **changes)
    except LendingError as e:
        raise http_error(e)

    return {"success": True, "data": customer_response(customer)}


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Delete a customer who has no active loans"""
    try:
        system.customer_manager.delete_customer(customer_id)
    except LendingError as e:
        raise http_error(e)

    return {"success": True, "data": {"customerId": customer_id, "deleted": True}}
