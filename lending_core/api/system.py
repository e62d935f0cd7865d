"""
Lending system wiring and the request dependency that hands it to routers
"""

from typing import Optional

from ..storage import InMemoryStorage, SQLiteStorage
from ..audit import AuditTrail
from ..customers import CustomerManager
from ..loans import LoanManager
from ..payments import PaymentProcessor
from ..reporting import PortfolioAggregator
from ..config import get_config


class LendingSystem:
    """Lending engine with all components initialized"""

    def __init__(self, use_sqlite: bool = True, database_path: Optional[str] = None):
        config = get_config()

        # Initialize storage
        if use_sqlite:
            self.storage = SQLiteStorage(database_path or config.database_path)
        else:
            self.storage = InMemoryStorage()

        self.audit_trail = AuditTrail(self.storage, enabled=config.enable_audit_logging)
        self.customer_manager = CustomerManager(self.storage, self.audit_trail)
        self.loan_manager = LoanManager(self.storage, self.customer_manager, self.audit_trail)
        self.payment_processor = PaymentProcessor(self.storage, self.loan_manager, self.audit_trail)
        self.aggregator = PortfolioAggregator(
            self.customer_manager, self.loan_manager, self.payment_processor
        )

    def close(self) -> None:
        self.storage.close()


# Global lending system instance, created on first request
lending_system: Optional[LendingSystem] = None


def page_limit(limit: Optional[int]) -> int:
    """Apply the configured default and ceiling to a list limit"""
    config = get_config()
    if not limit or limit < 1:
        return config.default_page_limit
    return min(limit, config.max_page_limit)


def get_lending_system() -> LendingSystem:
    global lending_system
    if lending_system is None:
        lending_system = LendingSystem(use_sqlite=get_config().use_sqlite)
    return lending_system
