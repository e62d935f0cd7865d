"""
Lending Core

Interest accrual and payment allocation for a small lending business:
daily ("vatti") and monthly simple-interest loans, interest-first
repayment, loan lifecycle and portfolio statistics. Money is Decimal
throughout and every state change is recorded in a hash-chained audit trail.
"""

__version__ = "1.0.0"
