"""
Test suite for portfolio statistics
"""

from decimal import Decimal
from datetime import date

from lending_core.currency import Money
from lending_core.storage import InMemoryStorage
from lending_core.audit import AuditTrail
from lending_core.customers import CustomerManager, CustomerStatus
from lending_core.interest import InterestType
from lending_core.loans import LoanManager
from lending_core.payments import PaymentProcessor
from lending_core.reporting import PortfolioAggregator, summarize


class TestSummarize:
    """The pure aggregate over full collections"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)
        self.customer_manager = CustomerManager(self.storage, self.audit_trail)
        self.loan_manager = LoanManager(self.storage, self.customer_manager, self.audit_trail)
        self.processor = PaymentProcessor(self.storage, self.loan_manager, self.audit_trail)
        self.aggregator = PortfolioAggregator(self.customer_manager, self.loan_manager, self.processor)
        self.customer = self.customer_manager.create_customer(name="Ravi Kumar", phone="9876543210")

    def _loan(self, principal, rate, interest_type=InterestType.DAILY, due=date(2024, 12, 31)):
        return self.loan_manager.create_loan(
            customer_id=self.customer.id,
            principal_amount=Money(Decimal(principal)),
            interest_type=interest_type,
            interest_rate=rate,
            disbursement_date=date(2024, 1, 1),
            due_date=due
        )

    def test_empty_collections(self):
        stats = summarize([], [], [], date(2024, 1, 1))

        assert stats.total_principal_disbursed == Money.zero()
        assert stats.total_outstanding_interest == Money.zero()
        assert stats.net_profit_loss == Money.zero()
        assert stats.total_loans == 0
        assert stats.total_customers == 0
        assert stats.today_payments == 0

    def test_two_loan_example(self):
        """
        1,000 loan closed with 50 interest paid; 2,000 loan active with 10
        accrued -> disbursed 3,000, outstanding 2,000, earned 50, accrued 10
        """
        closed = self._loan('1000', '0.5')
        active = self._loan('2000', '0.05')
        # 1,000 x 0.5% x 10 days = 50 interest
        self.processor.apply_payment(closed.id, Money(Decimal('1050')), date(2024, 1, 11))

        # 2,000 x 0.05% x 10 days = 10
        stats = self.aggregator.summarize(date(2024, 1, 11))

        assert stats.total_principal_disbursed == Money(Decimal('3000'))
        assert stats.total_outstanding_principal == Money(Decimal('2000'))
        assert stats.total_interest_earned == Money(Decimal('50'))
        assert stats.total_outstanding_interest == Money(Decimal('10'))
        assert stats.total_profit == Money(Decimal('50'))
        assert stats.net_profit_loss == Money(Decimal('50'))
        assert stats.active_loans == 1
        assert stats.closed_loans == 1
        assert stats.total_amount_received == Money(Decimal('1050'))
        assert stats.today_payments == 1
        assert stats.today_amount == Money(Decimal('1050'))
        assert self.loan_manager.get_loan(active.id).outstanding_principal == Money(Decimal('2000'))

    def test_defaulted_principal_is_a_loss(self):
        earning = self._loan('1000', '0.5')
        bad = self._loan('3000', '0.1')
        self.processor.apply_payment(earning.id, Money(Decimal('100')), date(2024, 1, 11))
        self.processor.apply_payment(bad.id, Money(Decimal('500')), date(2024, 1, 11))
        self.loan_manager.mark_defaulted(bad.id, date(2024, 2, 1))

        stats = self.aggregator.summarize(date(2024, 2, 1))

        # 50 + 30 interest earned, 2,530 principal written off
        assert stats.total_interest_earned == Money(Decimal('80'))
        assert stats.written_off_principal == Money(Decimal('2530'))
        assert stats.net_profit_loss == Money(Decimal('-2450'))
        assert stats.total_outstanding_principal == Money(Decimal('950'))
        assert stats.defaulted_loans == 1

    def test_forgiven_principal_reported_separately(self):
        loan = self._loan('1000', '0.1')
        self.loan_manager.close_loan(loan.id, date(2024, 1, 2))

        stats = self.aggregator.summarize(date(2024, 1, 2))
        assert stats.total_forgiven_principal == Money(Decimal('1000'))
        assert stats.net_profit_loss == Money.zero()

    def test_counts(self):
        self._loan('1000', '0.1', due=date(2024, 1, 15))
        self._loan('1000', '2', interest_type=InterestType.MONTHLY)
        other = self.customer_manager.create_customer(name="Meena Iyer", phone="9123456789")
        self.customer_manager.update_customer(other.id, status=CustomerStatus.INACTIVE)

        stats = self.aggregator.summarize(date(2024, 2, 1))
        assert stats.daily_loans == 1
        assert stats.monthly_loans == 1
        assert stats.total_loans == 2
        assert stats.overdue_loans == 1
        assert stats.total_customers == 2
        assert stats.active_customers == 1

    def test_loans_starting_after_report_date(self):
        self._loan('1000', '0.1')
        stats = self.aggregator.summarize(date(2023, 12, 1))
        assert stats.total_outstanding_interest == Money.zero()
        assert stats.total_outstanding_principal == Money(Decimal('1000'))


class TestOverviewViews:
    """The camelCase views the dashboard reads"""

    def setup_method(self):
        storage = InMemoryStorage()
        audit_trail = AuditTrail(storage)
        self.customer_manager = CustomerManager(storage, audit_trail)
        self.loan_manager = LoanManager(storage, self.customer_manager, audit_trail)
        self.processor = PaymentProcessor(storage, self.loan_manager, audit_trail)
        self.aggregator = PortfolioAggregator(self.customer_manager, self.loan_manager, self.processor)

    def test_views_on_empty_book(self):
        loans = self.aggregator.loan_stats(date(2024, 1, 1))
        customers = self.aggregator.customer_stats(date(2024, 1, 1))
        payments = self.aggregator.payment_stats(date(2024, 1, 1))

        assert loans["totalPrincipalDisbursed"] == "0.00"
        assert loans["netProfitLoss"] == "0.00"
        assert loans["activeLoans"] == 0
        assert customers == {"totalCustomers": 0, "activeCustomers": 0}
        assert payments["todayAmount"] == "0.00"
        assert payments["totalPayments"] == 0

    def test_summary_to_dict(self):
        stats = self.aggregator.summarize("2024-03-01")
        body = stats.to_dict()
        assert body["as_of_date"] == "2024-03-01"
        assert body["total_outstanding_interest"] == "0.00"
