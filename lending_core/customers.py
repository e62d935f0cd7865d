"""
Customer Management Module

Manages borrower profiles: onboarding, edits, KYC identifier format checks,
derived loan counts, and deletion guarded by active loans.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Iterator, Tuple
from enum import Enum
from contextlib import contextmanager
import threading
import uuid
import re

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .errors import ValidationError, CustomerNotFoundError, CustomerHasActiveLoansError
from .logging_config import get_logger, log_action


PHONE_PATTERN = r'^[6-9]\d{9}$'
EMAIL_PATTERN = r'^[^\s@]+@[^\s@]+\.[^\s@]+$'
PAN_PATTERN = r'^[A-Z]{5}[0-9]{4}[A-Z]$'
AADHAR_PATTERN = r'^\d{12}$'
PINCODE_PATTERN = r'^\d{6}$'


class CustomerStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


def validate_phone(phone: str) -> bool:
    return bool(phone) and re.match(PHONE_PATTERN, phone) is not None


def validate_email(email: str) -> bool:
    return bool(email) and re.match(EMAIL_PATTERN, email) is not None


def validate_pan(pan: str) -> bool:
    return bool(pan) and re.match(PAN_PATTERN, pan) is not None


def validate_aadhar(aadhar: str) -> bool:
    return bool(aadhar) and re.match(AADHAR_PATTERN, aadhar) is not None


@dataclass
class Address:
    """Customer address"""
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None

    def __post_init__(self):
        if self.pincode and not re.match(PINCODE_PATTERN, self.pincode):
            raise ValidationError("Pincode must be 6 digits", field="address.pincode")

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            'street': self.street,
            'city': self.city,
            'state': self.state,
            'pincode': self.pincode
        }


@dataclass
class Customer(StorageRecord):
    """
    Borrower profile. active_loans and total_loans are derived from the
    loans the customer owns and refreshed by CustomerManager.
    """
    name: str
    phone: str
    email: Optional[str] = None
    aadhar_number: Optional[str] = None
    pan_number: Optional[str] = None
    address: Address = field(default_factory=Address)
    status: CustomerStatus = CustomerStatus.ACTIVE
    notes: Optional[str] = None
    active_loans: int = 0
    total_loans: int = 0

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValidationError("Customer name is required", field="name")
        if not validate_phone(self.phone):
            raise ValidationError("Phone must be a 10-digit mobile number starting with 6-9", field="phone")
        if self.email and not validate_email(self.email):
            raise ValidationError("Invalid email format", field="email")
        if self.aadhar_number and not validate_aadhar(self.aadhar_number):
            raise ValidationError("Aadhar number must be 12 digits", field="aadhar_number")
        if self.pan_number and not validate_pan(self.pan_number):
            raise ValidationError("PAN must look like ABCDE1234F", field="pan_number")

    @property
    def customer_id(self) -> str:
        return self.id

    @property
    def is_active(self) -> bool:
        return self.status == CustomerStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['address'] = self.address.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Customer':
        data = dict(data)
        data['address'] = Address(**(data.get('address') or {}))
        data['status'] = CustomerStatus(data.get('status', 'active'))
        return super().from_dict(data)


class CustomerManager:
    """
    Manages customer lifecycle and the loan counts shown on customer lists
    """

    UPDATABLE_FIELDS = ('name', 'phone', 'email', 'aadhar_number', 'pan_number', 'address', 'status', 'notes')

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = "customers"
        self.loans_table = "loans"
        self.logger = get_logger("lending.customers")

        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def customer_lock(self, customer_id: str) -> Iterator[None]:
        """
        Serialize changes to one customer's record and loan counts

        Taken after any loan lock and before storage.atomic(), and held
        until the transaction commits, so a count is never computed from
        another thread's uncommitted loan state.
        """
        with self._locks_guard:
            lock = self._locks.setdefault(customer_id, threading.RLock())
        with lock:
            yield

    def create_customer(
        self,
        name: str,
        phone: str,
        email: Optional[str] = None,
        aadhar_number: Optional[str] = None,
        pan_number: Optional[str] = None,
        address: Optional[Address] = None,
        notes: Optional[str] = None
    ) -> Customer:
        """
        Onboard a new customer

        Raises:
            ValidationError: If a field has the wrong format or the phone,
                Aadhar or PAN already belongs to another customer
        """
        now = datetime.now(timezone.utc)

        customer = Customer(
            id=f"CUST-{uuid.uuid4().hex[:8].upper()}",
            created_at=now,
            updated_at=now,
            name=name.strip() if name else name,
            phone=phone,
            email=email or None,
            aadhar_number=aadhar_number or None,
            pan_number=pan_number.upper() if pan_number else None,
            address=address or Address(),
            notes=notes
        )
        self._check_unique(customer)

        self.storage.save(self.table_name, customer.id, customer.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.CUSTOMER_CREATED,
            entity_type="customer",
            entity_id=customer.id,
            metadata={"name": customer.name, "phone": customer.phone}
        )
        log_action(self.logger, "info", "Customer created",
                   action="customer_created", resource=customer.id)

        return customer

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        """Get customer by ID"""
        data = self.storage.load(self.table_name, customer_id)
        if data:
            return Customer.from_dict(data)
        return None

    def require_customer(self, customer_id: str) -> Customer:
        customer = self.get_customer(customer_id)
        if not customer:
            raise CustomerNotFoundError(f"Customer {customer_id} not found")
        return customer

    def get_all_customers(self) -> List[Customer]:
        customers = [Customer.from_dict(data) for data in self.storage.load_all(self.table_name)]
        customers.sort(key=lambda c: c.created_at)
        return customers

    def list_customers(
        self,
        search: Optional[str] = None,
        status: Optional[CustomerStatus] = None,
        limit: Optional[int] = None
    ) -> List[Customer]:
        """List customers, newest first, matching name, phone or ID"""
        customers = self.get_all_customers()
        if status:
            customers = [c for c in customers if c.status == status]
        if search:
            term = search.strip().lower()
            customers = [
                c for c in customers
                if term in c.name.lower() or term in c.phone or term in c.id.lower()
            ]
        customers.reverse()
        if limit:
            customers = customers[:limit]
        return customers

    def update_customer(self, customer_id: str, **changes: Any) -> Customer:
        """
        Edit customer fields

        Raises:
            CustomerNotFoundError: If the customer does not exist
            ValidationError: If a changed field is invalid or not editable
        """
        unknown = set(changes) - set(self.UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        with self.customer_lock(customer_id):
            customer = self.require_customer(customer_id)

            data = customer.to_dict()
            changed = {}
            for key, value in changes.items():
                if value is None:
                    continue
                if isinstance(value, Address):
                    value = value.to_dict()
                elif isinstance(value, CustomerStatus):
                    value = value.value
                elif key == 'pan_number':
                    value = value.upper()
                data[key] = value
                changed[key] = value
            data['updated_at'] = datetime.now(timezone.utc).isoformat()

            updated = Customer.from_dict(data)
            self._check_unique(updated)
            self.storage.save(self.table_name, updated.id, updated.to_dict())

        if changed:
            self.audit_trail.log_event(
                event_type=AuditEventType.CUSTOMER_UPDATED,
                entity_type="customer",
                entity_id=customer_id,
                metadata={"fields": sorted(changed)}
            )
        return updated

    def delete_customer(self, customer_id: str) -> None:
        """
        Delete a customer who has no active loans

        Raises:
            CustomerNotFoundError: If the customer does not exist
            CustomerHasActiveLoansError: If any owned loan is still active
        """
        with self.customer_lock(customer_id):
            self.require_customer(customer_id)

            active_loans, _ = self.loan_counts(customer_id)
            if active_loans > 0:
                log_action(self.logger, "warning", "Customer delete rejected",
                           action="customer_delete_rejected", resource=customer_id,
                           extra={"active_loans": active_loans})
                raise CustomerHasActiveLoansError(customer_id, active_loans)

            self.storage.delete(self.table_name, customer_id)

        self.audit_trail.log_event(
            event_type=AuditEventType.CUSTOMER_DELETED,
            entity_type="customer",
            entity_id=customer_id,
            metadata={}
        )
        log_action(self.logger, "info", "Customer deleted",
                   action="customer_deleted", resource=customer_id)

    def loan_counts(self, customer_id: str) -> Tuple[int, int]:
        """Return (active_loans, total_loans) computed from the loans table"""
        loans = self.storage.find(self.loans_table, {"customer_id": customer_id})
        active = sum(1 for loan in loans if loan.get('status') == 'active')
        return active, len(loans)

    def refresh_loan_counts(self, customer_id: str) -> Optional[Customer]:
        """
        Recompute and store the derived loan counts for a customer.
        Callers changing a loan hold customer_lock across their commit.
        """
        with self.customer_lock(customer_id):
            data = self.storage.load(self.table_name, customer_id)
            if not data:
                return None
            data['active_loans'], data['total_loans'] = self.loan_counts(customer_id)
            self.storage.save(self.table_name, customer_id, data)
        return Customer.from_dict(data)

    def _check_unique(self, customer: Customer) -> None:
        for other in self.get_all_customers():
            if other.id == customer.id:
                continue
            if other.phone == customer.phone:
                raise ValidationError(f"Phone {customer.phone} is already registered", field="phone")
            if customer.aadhar_number and other.aadhar_number == customer.aadhar_number:
                raise ValidationError("Aadhar number is already registered", field="aadhar_number")
            if customer.pan_number and other.pan_number == customer.pan_number:
                raise ValidationError("PAN is already registered", field="pan_number")
