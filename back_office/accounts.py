"""
Account Management Module

Creates, reads and deletes accounts, and renumbers them. The account number
is the account's identity, so renumbering moves the account row and rewrites
every transaction, locker and request that references the old number, all in
one transaction.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .config import BackOfficeConfig, get_config
from .errors import Conflict, NotFound
from .logging_config import get_logger, log_action
from .storage import (
    StorageInterface, StorageRecord,
    ACCOUNTS_TABLE, TRANSACTIONS_TABLE, LOCKERS_TABLE, REQUESTS_TABLE, DEPENDENT_TABLES
)
from .validation import check_acc_no, clean_name, parse_balance


@dataclass
class Account(StorageRecord):
    """Bank account keyed by its account number"""
    acc_no: int
    name: str
    balance: Decimal

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        data = dict(data)
        data['balance'] = Decimal(data['balance'])
        return super().from_dict(data)


def _row_key(table: str, row: Dict[str, Any]) -> str:
    """Storage key of a dependent row; lockers are keyed by account number"""
    if table == LOCKERS_TABLE:
        return str(row['acc_no'])
    return str(row['id'])


class AccountManager:
    """
    Manages account identity: creation, lookup, renumbering and deletion
    """

    def __init__(self, storage: StorageInterface, config: Optional[BackOfficeConfig] = None):
        self.storage = storage
        self.accounts_table = ACCOUNTS_TABLE
        self.account_number_floor = (config or get_config()).account_number_floor
        self.logger = get_logger("back_office.accounts")

    def create_account(self, acc_no: int, name: str, initial_balance: Any = None) -> Account:
        """
        Create a new account

        Args:
            acc_no: Positive account number, must not be in use
            name: Account holder name (at least 2 characters once trimmed)
            initial_balance: Opening balance, defaults to zero

        Returns:
            Created Account object

        Raises:
            InvalidArgument: Bad number, name or balance
            Conflict: The account number already exists
        """
        acc_no = check_acc_no(acc_no)
        name = clean_name(name)
        balance = parse_balance(initial_balance)

        account = Account(
            created_at=datetime.now(timezone.utc),
            acc_no=acc_no,
            name=name,
            balance=balance
        )

        with self.storage.atomic():
            if self.storage.exists(self.accounts_table, str(acc_no)):
                raise Conflict("Account already exists")
            self.storage.insert(self.accounts_table, str(acc_no), account.to_dict())

        log_action(
            self.logger, "info", "Account created",
            action="create_account", acc_no=acc_no,
            extra={"balance": str(balance)}
        )

        return account

    def find_account(self, acc_no: int) -> Optional[Account]:
        """Get account by number, or None"""
        data = self.storage.load(self.accounts_table, str(acc_no))
        if data:
            return Account.from_dict(data)
        return None

    def get_account(self, acc_no: int) -> Account:
        """Get account by number"""
        account = self.find_account(check_acc_no(acc_no))
        if account is None:
            raise NotFound("Account not found")
        return account

    def list_accounts(self) -> List[Account]:
        """All accounts ordered by account number"""
        accounts = [Account.from_dict(data) for data in self.storage.load_all(self.accounts_table)]
        return sorted(accounts, key=lambda a: a.acc_no)

    def next_account_number(self) -> int:
        """
        Highest account number plus one, or the configured floor when there
        are no accounts. Two concurrent callers can get the same answer; the
        second insert then fails with Conflict.
        """
        numbers = [data['acc_no'] for data in self.storage.load_all(self.accounts_table)]
        if not numbers:
            return self.account_number_floor
        return max(numbers) + 1

    def delete_account(self, acc_no: int) -> None:
        """Delete an account together with its transactions, locker and requests"""
        acc_no = check_acc_no(acc_no)

        with self.storage.atomic():
            if self.storage.lock(self.accounts_table, str(acc_no)) is None:
                raise NotFound("Account not found")

            removed = {}
            for table in DEPENDENT_TABLES:
                rows = self.storage.find(table, {"acc_no": acc_no})
                for row in rows:
                    self.storage.delete(table, _row_key(table, row))
                removed[table] = len(rows)

            self.storage.delete(self.accounts_table, str(acc_no))

        log_action(
            self.logger, "info", "Account deleted",
            action="delete_account", acc_no=acc_no, extra=removed
        )

    def renumber_account(self, old_acc_no: int, new_acc_no: int, new_name: str) -> Account:
        """
        Change an account's number and name

        The account row moves to the new number and every dependent row is
        rewritten before the transaction commits, so no reader ever sees a
        half-renumbered account. Renumbering to the same number only renames.

        Raises:
            InvalidArgument: Bad numbers or name
            NotFound: The old account does not exist
            Conflict: The new number belongs to another account
        """
        old_acc_no = check_acc_no(old_acc_no, "old account number")
        new_acc_no = check_acc_no(new_acc_no, "new account number")
        name = clean_name(new_name)

        with self.storage.atomic():
            data = self.storage.lock(self.accounts_table, str(old_acc_no))
            if data is None:
                raise NotFound("Old account not found")

            if new_acc_no != old_acc_no and self.storage.exists(self.accounts_table, str(new_acc_no)):
                raise Conflict("New account number already exists")

            account = Account.from_dict(data)
            account.name = name

            moved = {}
            if new_acc_no == old_acc_no:
                self.storage.save(self.accounts_table, str(old_acc_no), account.to_dict())
            else:
                account.acc_no = new_acc_no
                self.storage.insert(self.accounts_table, str(new_acc_no), account.to_dict())
                self.storage.delete(self.accounts_table, str(old_acc_no))
                moved = self._cascade_renumber(old_acc_no, new_acc_no)

        log_action(
            self.logger, "info", "Account renumbered",
            action="renumber_account", acc_no=new_acc_no,
            extra={"old_acc_no": old_acc_no, "moved": moved}
        )

        return account

    def _cascade_renumber(self, old_acc_no: int, new_acc_no: int) -> Dict[str, int]:
        """Point every dependent row at the new account number"""
        moved = {}

        for table in (TRANSACTIONS_TABLE, REQUESTS_TABLE):
            rows = self.storage.find(table, {"acc_no": old_acc_no})
            for row in rows:
                row['acc_no'] = new_acc_no
                self.storage.save(table, _row_key(table, row), row)
            moved[table] = len(rows)

        locker = self.storage.load(LOCKERS_TABLE, str(old_acc_no))
        if locker:
            locker['acc_no'] = new_acc_no
            self.storage.insert(LOCKERS_TABLE, str(new_acc_no), locker)
            self.storage.delete(LOCKERS_TABLE, str(old_acc_no))
        moved[LOCKERS_TABLE] = 1 if locker else 0

        return moved
