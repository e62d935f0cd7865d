"""
Test suite for audit module

Tests the hash-chained audit trail, tamper detection and integrity
verification.
"""

import pytest
import threading
from datetime import datetime, timezone, date
from decimal import Decimal

from lending_core.currency import Money
from lending_core.storage import InMemoryStorage, SQLiteStorage
from lending_core.audit import AuditTrail, AuditEvent, AuditEventType


class TestAuditEvent:
    """Test AuditEvent functionality"""

    def test_metadata_serialization(self):
        """Money, Decimal, dates and enums become JSON-friendly values"""
        now = datetime.now(timezone.utc)
        event = AuditEvent(
            id="AUDIT001",
            created_at=now,
            updated_at=now,
            event_type=AuditEventType.PAYMENT_APPLIED,
            entity_type="payment",
            entity_id="PAY-00000001",
            previous_hash="",
            current_hash="",
            metadata={
                "amount": Money(Decimal('150')),
                "rate": Decimal('0.1'),
                "payment_date": date(2024, 1, 11),
                "type": AuditEventType.LOAN_CLOSED,
                "nested": {"principal": Money(Decimal('50'))}
            }
        )

        assert event.metadata["amount"] == "150.00"
        assert event.metadata["rate"] == "0.1"
        assert event.metadata["payment_date"] == "2024-01-11"
        assert event.metadata["type"] == "loan_closed"
        assert event.metadata["nested"] == {"principal": "50.00"}

    def test_hash_verification(self):
        now = datetime.now(timezone.utc)
        event = AuditEvent(
            id="AUDIT002",
            created_at=now,
            updated_at=now,
            event_type=AuditEventType.LOAN_CREATED,
            entity_type="loan",
            entity_id="LOAN-00000001",
            previous_hash="abc",
            current_hash="",
            metadata={"principal_amount": "10000.00"}
        )
        event.current_hash = event.calculate_hash()
        assert event.verify_hash()

        event.metadata["principal_amount"] = "1.00"
        assert not event.verify_hash()


class TestAuditTrail:
    """Test AuditTrail chaining and queries"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)

    def test_chain_links_events(self):
        first = self.audit_trail.log_event(AuditEventType.CUSTOMER_CREATED, "customer", "CUST-1")
        second = self.audit_trail.log_event(AuditEventType.LOAN_CREATED, "loan", "LOAN-1")

        assert first.previous_hash == ""
        assert second.previous_hash == first.current_hash
        assert self.audit_trail.verify_integrity() == {
            'valid': True, 'total_events': 2, 'hash_errors': [], 'chain_breaks': []
        }

    def test_entity_and_limit_queries(self):
        for i in range(5):
            self.audit_trail.log_event(AuditEventType.PAYMENT_APPLIED, "payment", f"PAY-{i}")
        self.audit_trail.log_event(AuditEventType.PAYMENT_UPDATED, "payment", "PAY-2")

        events = self.audit_trail.get_events_for_entity("payment", "PAY-2")
        assert [e.event_type for e in events] == [AuditEventType.PAYMENT_APPLIED, AuditEventType.PAYMENT_UPDATED]

        latest = self.audit_trail.get_all_events(limit=2)
        assert [e.entity_id for e in latest] == ["PAY-4", "PAY-2"]

    def test_detects_tampering(self):
        event = self.audit_trail.log_event(AuditEventType.LOAN_CLOSED, "loan", "LOAN-1",
                                           metadata={"forgiven_principal": "100.00"})
        self.audit_trail.log_event(AuditEventType.LOAN_CREATED, "loan", "LOAN-2")

        record = self.storage.load("audit_events", event.id)
        record["metadata"]["forgiven_principal"] = "0.00"
        self.storage.save("audit_events", event.id, record)

        result = self.audit_trail.verify_integrity()
        assert not result['valid']
        assert result['hash_errors'] == [event.id]

    def test_detects_deleted_event(self):
        self.audit_trail.log_event(AuditEventType.CUSTOMER_CREATED, "customer", "CUST-1")
        middle = self.audit_trail.log_event(AuditEventType.CUSTOMER_UPDATED, "customer", "CUST-1")
        last = self.audit_trail.log_event(AuditEventType.CUSTOMER_DELETED, "customer", "CUST-1")

        self.storage.delete("audit_events", middle.id)

        result = self.audit_trail.verify_integrity()
        assert not result['valid']
        assert result['chain_breaks'] == [last.id]

    def test_disabled_trail_logs_nothing(self):
        trail = AuditTrail(self.storage, enabled=False)
        assert trail.log_event(AuditEventType.CUSTOMER_CREATED, "customer", "CUST-1") is None
        assert trail.get_all_events() == []

    def test_concurrent_logging_keeps_chain(self):
        def worker(n):
            for i in range(10):
                self.audit_trail.log_event(AuditEventType.PAYMENT_APPLIED, "payment", f"PAY-{n}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        result = self.audit_trail.verify_integrity()
        assert result['valid']
        assert result['total_events'] == 50

    def test_chain_resumes_after_restart(self, tmp_path):
        storage = SQLiteStorage(tmp_path / "audit.db")
        trail = AuditTrail(storage)
        first = trail.log_event(AuditEventType.CUSTOMER_CREATED, "customer", "CUST-1")

        resumed = AuditTrail(storage)
        second = resumed.log_event(AuditEventType.CUSTOMER_UPDATED, "customer", "CUST-1")

        assert second.previous_hash == first.current_hash
        assert resumed.verify_integrity()['valid']
        storage.close()
