"""
Transaction Processing Module

Deposits and withdrawals. Each call locks the account row, moves the
balance and appends one immutable transaction record in a single storage
transaction; a failed call changes nothing.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple
from enum import Enum

from .accounts import Account
from .errors import InsufficientFunds, NotFound
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord, ACCOUNTS_TABLE, TRANSACTIONS_TABLE
from .validation import check_acc_no, parse_amount, parse_balance


class TransactionType(Enum):
    """Types of ledger entries"""
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    OPEN = "OPEN"  # Opening balance of a request-created account


@dataclass
class Transaction(StorageRecord):
    """
    Append-only ledger entry. DEPOSIT and OPEN add the amount to
    before_balance, WITHDRAW subtracts it.
    """
    id: int
    acc_no: int
    transaction_type: TransactionType
    amount: Decimal
    before_balance: Decimal
    after_balance: Decimal

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        data = dict(data)
        data['transaction_type'] = TransactionType(data['transaction_type'])
        for key in ('amount', 'before_balance', 'after_balance'):
            data[key] = Decimal(data[key])
        return super().from_dict(data)


class TransactionProcessor:
    """
    Applies balance mutations under an exclusive account row lock
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.transactions_table = TRANSACTIONS_TABLE
        self.logger = get_logger("back_office.transactions")

    def deposit(self, acc_no: int, amount: Any) -> Tuple[Decimal, Decimal]:
        """Credit an account; returns (before, after) balances"""
        return self._apply(TransactionType.DEPOSIT, acc_no, amount)

    def withdraw(self, acc_no: int, amount: Any) -> Tuple[Decimal, Decimal]:
        """
        Debit an account; returns (before, after) balances

        Raises:
            InsufficientFunds: amount exceeds the current balance
        """
        return self._apply(TransactionType.WITHDRAW, acc_no, amount)

    def _apply(self, transaction_type: TransactionType, acc_no: int, amount: Any) -> Tuple[Decimal, Decimal]:
        acc_no = check_acc_no(acc_no)
        amount = parse_amount(amount)

        with self.storage.atomic():
            data = self.storage.lock(ACCOUNTS_TABLE, str(acc_no))
            if data is None:
                raise NotFound("Account not found")

            account = Account.from_dict(data)
            before = account.balance

            if transaction_type == TransactionType.WITHDRAW:
                if amount > before:
                    log_action(
                        self.logger, "warning", "Insufficient balance for withdrawal",
                        action="withdraw", acc_no=acc_no,
                        extra={"balance": str(before), "amount": str(amount)}
                    )
                    raise InsufficientFunds("Insufficient balance")
                after = before - amount
            else:
                after = before + amount

            account.balance = after
            self.storage.save(ACCOUNTS_TABLE, str(acc_no), account.to_dict())
            transaction = self._append(acc_no, transaction_type, amount, before, after)

        log_action(
            self.logger, "info", f"{transaction_type.value.capitalize()} posted",
            action=transaction_type.value.lower(), acc_no=acc_no,
            extra={
                "transaction_id": transaction.id,
                "amount": str(amount),
                "before": str(before),
                "after": str(after)
            }
        )

        return before, after

    def record_opening(self, acc_no: int, opening_balance: Any) -> Transaction:
        """Append the OPEN entry of a freshly created account (before 0, after opening balance)"""
        opening_balance = parse_balance(opening_balance)
        with self.storage.atomic():
            return self._append(
                acc_no, TransactionType.OPEN, opening_balance, Decimal("0.00"), opening_balance
            )

    def _append(self, acc_no: int, transaction_type: TransactionType, amount: Decimal,
                before: Decimal, after: Decimal) -> Transaction:
        transaction = Transaction(
            created_at=datetime.now(timezone.utc),
            id=self.storage.next_id(self.transactions_table),
            acc_no=acc_no,
            transaction_type=transaction_type,
            amount=amount,
            before_balance=before,
            after_balance=after
        )
        self.storage.insert(self.transactions_table, str(transaction.id), transaction.to_dict())
        return transaction

    def get_transactions(self, acc_no: int) -> List[Transaction]:
        """Transactions of an account, newest first (empty for unknown accounts)"""
        acc_no = check_acc_no(acc_no)
        rows = self.storage.find(self.transactions_table, {"acc_no": acc_no})
        transactions = [Transaction.from_dict(row) for row in rows]
        return sorted(transactions, key=lambda t: t.id, reverse=True)
