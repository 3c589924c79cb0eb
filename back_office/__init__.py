"""
Back Office Banking System

Accounts, deposits and withdrawals, safe-deposit lockers and a staff
request/approval workflow over a transactional store, with balances kept
as Decimal and every mutation applied atomically.
"""

__version__ = "1.0.0"
