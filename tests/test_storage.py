"""
Tests for storage backends and transaction support
"""

import pytest
import threading
from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass

from lending_core.currency import Money
from lending_core.storage import InMemoryStorage, SQLiteStorage, StorageRecord


# Test data
test_data = {
    "id": "test_001",
    "name": "Test Record",
    "amount": "100.50",
    "created_at": datetime.now(timezone.utc).isoformat(),
    "updated_at": datetime.now(timezone.utc).isoformat()
}


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "test.db")
    yield backend
    backend.close()


class TestStorageBackends:
    """Behaviour shared by every backend"""

    def test_basic_operations(self, storage):
        storage.save("test_table", "record_1", test_data)
        assert storage.load("test_table", "record_1") == test_data
        assert storage.exists("test_table", "record_1")
        assert not storage.exists("test_table", "missing")
        assert storage.load("test_table", "missing") is None

        storage.save("test_table", "record_2", {"id": "record_2", "name": "Other"})
        assert len(storage.load_all("test_table")) == 2
        assert storage.count("test_table") == 2

        assert storage.delete("test_table", "record_1")
        assert not storage.delete("test_table", "record_1")
        assert storage.count("test_table") == 1

        storage.clear_table("test_table")
        assert storage.count("test_table") == 0

    def test_find(self, storage):
        storage.save("loans", "L1", {"id": "L1", "customer_id": "C1", "status": "active"})
        storage.save("loans", "L2", {"id": "L2", "customer_id": "C1", "status": "closed"})
        storage.save("loans", "L3", {"id": "L3", "customer_id": "C2", "status": "active"})

        assert {r["id"] for r in storage.find("loans", {"customer_id": "C1"})} == {"L1", "L2"}
        assert [r["id"] for r in storage.find("loans", {"customer_id": "C1", "status": "active"})] == ["L1"]
        assert storage.find("loans", {"customer_id": "C9"}) == []

    def test_loaded_records_are_copies(self, storage):
        storage.save("test_table", "record_1", {"id": "record_1", "tags": ["a"]})
        loaded = storage.load("test_table", "record_1")
        loaded["tags"].append("b")
        assert storage.load("test_table", "record_1")["tags"] == ["a"]

    def test_atomic_commit(self, storage):
        with storage.atomic():
            storage.save("test_table", "record_1", test_data)
            storage.save("test_table", "record_2", {"id": "record_2"})
        assert storage.count("test_table") == 2

    def test_atomic_rollback(self, storage):
        storage.save("test_table", "record_1", {"id": "record_1", "value": "before"})

        with pytest.raises(ValueError, match="Simulated error"):
            with storage.atomic():
                storage.save("test_table", "record_1", {"id": "record_1", "value": "after"})
                storage.save("test_table", "record_2", {"id": "record_2"})
                raise ValueError("Simulated error")

        assert storage.load("test_table", "record_1")["value"] == "before"
        assert not storage.exists("test_table", "record_2")

    def test_reads_inside_transaction_see_own_writes(self, storage):
        with storage.atomic():
            storage.save("test_table", "record_1", {"id": "record_1"})
            assert storage.exists("test_table", "record_1")
            assert storage.delete("test_table", "record_1")
            assert storage.load("test_table", "record_1") is None
        assert storage.count("test_table") == 0


class TestInMemoryIsolation:
    """Uncommitted writes stay private to the writing thread"""

    def test_other_threads_do_not_see_pending_writes(self):
        storage = InMemoryStorage()
        seen = []
        written = threading.Event()
        checked = threading.Event()

        def reader():
            written.wait()
            seen.append(storage.exists("test_table", "record_1"))
            checked.set()

        thread = threading.Thread(target=reader)
        thread.start()
        with storage.atomic():
            storage.save("test_table", "record_1", {"id": "record_1"})
            written.set()
            checked.wait()
        thread.join()

        assert seen == [False]
        assert storage.exists("test_table", "record_1")


class TestStorageRecord:
    """Test StorageRecord functionality"""

    def test_storage_record_serialization(self):
        """Money, Decimal and dates become strings"""
        @dataclass
        class TestRecord(StorageRecord):
            name: str
            amount: Money
            rate: Decimal
            due: date

        record = TestRecord(
            id="test_001",
            created_at=datetime.now(timezone.utc),
            updated_at=datetime.now(timezone.utc),
            name="Test Record",
            amount=Money(Decimal("100.5")),
            rate=Decimal("0.25"),
            due=date(2024, 6, 30)
        )

        data = record.to_dict()
        assert data["amount"] == "100.50"
        assert data["rate"] == "0.25"
        assert data["due"] == "2024-06-30"
        assert isinstance(data["created_at"], str)

        restored = TestRecord.from_dict(data)
        assert restored.id == record.id
        assert restored.created_at == record.created_at
