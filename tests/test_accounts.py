"""
Test suite for account management module

Tests account creation, lookup, deletion and the renumber cascade.
"""

import pytest
from decimal import Decimal

from back_office.config import BackOfficeConfig
from back_office.errors import Conflict, InvalidArgument, NotFound
from back_office.storage import InMemoryStorage, SQLiteStorage
from back_office.accounts import AccountManager, Account
from back_office.transactions import TransactionProcessor
from back_office.lockers import LockerManager
from back_office.validation import MAX_ID
from back_office.workflows import RequestWorkflowEngine, RequestType


class TestAccountManager:
    """Test account management functionality"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.config = BackOfficeConfig(_env_file=None)
        self.account_manager = AccountManager(self.storage, self.config)

    def test_create_account(self):
        """Test creating an account"""
        account = self.account_manager.create_account(1001, "  Alice  ", "250.50")

        assert isinstance(account, Account)
        assert account.acc_no == 1001
        assert account.name == "Alice"
        assert account.balance == Decimal("250.50")
        assert self.account_manager.get_account(1001).balance == Decimal("250.50")

    def test_create_account_defaults_to_zero_balance(self):
        account = self.account_manager.create_account(1001, "Alice")
        assert account.balance == Decimal("0.00")

    @pytest.mark.parametrize("acc_no", [0, -5, None, "1001", 10.5, True, 2 ** 63, 10 ** 20])
    def test_create_account_invalid_number(self, acc_no):
        with pytest.raises(InvalidArgument, match="Invalid acc_no"):
            self.account_manager.create_account(acc_no, "Alice")

    @pytest.mark.parametrize("name", [None, "", " A ", 42])
    def test_create_account_invalid_name(self, name):
        with pytest.raises(InvalidArgument, match="Invalid name"):
            self.account_manager.create_account(1001, name)

    def test_create_account_negative_balance(self):
        with pytest.raises(InvalidArgument, match="Balance can't be negative"):
            self.account_manager.create_account(1001, "Alice", -1)

    @pytest.mark.parametrize("balance", ["abc", "1.001", "NaN", "Infinity"])
    def test_create_account_invalid_balance(self, balance):
        with pytest.raises(InvalidArgument, match="Invalid balance"):
            self.account_manager.create_account(1001, "Alice", balance)

    def test_create_duplicate_account(self):
        self.account_manager.create_account(1001, "Alice")

        with pytest.raises(Conflict, match="Account already exists"):
            self.account_manager.create_account(1001, "Bob")

        assert self.account_manager.get_account(1001).name == "Alice"

    def test_get_missing_account(self):
        assert self.account_manager.find_account(4242) is None
        with pytest.raises(NotFound):
            self.account_manager.get_account(4242)

    def test_list_accounts_ordered_by_number(self):
        for acc_no in (1003, 1001, 1002):
            self.account_manager.create_account(acc_no, f"Holder {acc_no}")

        assert [a.acc_no for a in self.account_manager.list_accounts()] == [1001, 1002, 1003]

    def test_next_account_number(self):
        """Floor when empty, otherwise max plus one"""
        assert self.account_manager.next_account_number() == 1001

        self.account_manager.create_account(5, "Alice")
        assert self.account_manager.next_account_number() == 6

        self.account_manager.create_account(2000, "Bob")
        assert self.account_manager.next_account_number() == 2001

    def test_next_account_number_uses_configured_floor(self):
        config = BackOfficeConfig(_env_file=None, account_number_floor=5000)
        manager = AccountManager(self.storage, config)
        assert manager.next_account_number() == 5000


class TestAccountRenumbering:
    """Test renumbering and deletion with dependent rows"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.config = BackOfficeConfig(_env_file=None)
        self.account_manager = AccountManager(self.storage, self.config)
        self.transactions = TransactionProcessor(self.storage)
        self.lockers = LockerManager(self.storage, self.config)
        self.workflows = RequestWorkflowEngine(
            self.storage, self.account_manager, self.transactions, self.lockers
        )

        self.account_manager.create_account(1001, "Alice", "100")
        self.transactions.deposit(1001, "50")
        self.transactions.withdraw(1001, "20")
        self.locker = self.lockers.create_locker(1001)
        self.request = self.workflows.submit(
            RequestType.UPDATE_ACCOUNT, 1001, {"new_acc_no": 3003, "name": "Alice B"}
        )

    def test_renumber_moves_everything(self):
        """Account, transactions, locker and requests all follow the new number"""
        account = self.account_manager.renumber_account(1001, 2002, "  Alice Smith ")

        assert account.acc_no == 2002
        assert account.name == "Alice Smith"
        assert account.balance == Decimal("130.00")

        assert self.account_manager.find_account(1001) is None
        assert self.account_manager.get_account(2002).balance == Decimal("130.00")

        assert self.transactions.get_transactions(1001) == []
        history = self.transactions.get_transactions(2002)
        assert len(history) == 2
        assert all(txn.acc_no == 2002 for txn in history)

        assert self.lockers.find_locker(1001) is None
        assert self.lockers.get_locker(2002).locker_key == self.locker.locker_key

        assert self.workflows.get_request(self.request.id).acc_no == 2002

    def test_renumber_to_same_number_renames(self):
        account = self.account_manager.renumber_account(1001, 1001, "Alicia")

        assert account.acc_no == 1001
        assert self.account_manager.get_account(1001).name == "Alicia"
        assert len(self.transactions.get_transactions(1001)) == 2

    def test_renumber_missing_account(self):
        with pytest.raises(NotFound, match="Old account not found"):
            self.account_manager.renumber_account(4242, 5000, "Nobody")

    def test_renumber_collision_changes_nothing(self):
        self.account_manager.create_account(2002, "Bob")

        with pytest.raises(Conflict, match="New account number already exists"):
            self.account_manager.renumber_account(1001, 2002, "Alice")

        assert self.account_manager.get_account(1001).name == "Alice"
        assert self.account_manager.get_account(2002).name == "Bob"
        assert len(self.transactions.get_transactions(1001)) == 2
        assert self.lockers.find_locker(1001) is not None

    @pytest.mark.parametrize("new_acc_no, name, message", [
        (0, "Alice", "Invalid new account number"),
        (2002, "A", "Invalid name"),
        (None, "Alice", "Invalid new account number"),
        (10 ** 20, "Alice", "Invalid new account number"),
    ])
    def test_renumber_invalid_input(self, new_acc_no, name, message):
        with pytest.raises(InvalidArgument, match=message):
            self.account_manager.renumber_account(1001, new_acc_no, name)

    def test_renumber_failure_midway_rolls_back(self):
        """A failure after the account row moved leaves the old state intact"""
        def failing_cascade(old_acc_no, new_acc_no):
            raise RuntimeError("disk full")

        self.account_manager._cascade_renumber = failing_cascade

        with pytest.raises(RuntimeError):
            self.account_manager.renumber_account(1001, 2002, "Alice")

        assert self.account_manager.find_account(2002) is None
        assert self.account_manager.get_account(1001).balance == Decimal("130.00")

    def test_delete_account_cascades(self):
        self.account_manager.create_account(2002, "Bob", "10")
        self.transactions.deposit(2002, "5")

        self.account_manager.delete_account(1001)

        assert self.account_manager.find_account(1001) is None
        assert self.transactions.get_transactions(1001) == []
        assert self.lockers.find_locker(1001) is None
        assert self.workflows.list_requests(acc_no=1001) == []

        # Other accounts are untouched
        assert len(self.transactions.get_transactions(2002)) == 1

    def test_delete_missing_account(self):
        with pytest.raises(NotFound):
            self.account_manager.delete_account(4242)


class TestAccountManagerSQLite:
    """Renumbering against the SQLite backend"""

    def test_renumber_cascade(self):
        storage = SQLiteStorage()
        config = BackOfficeConfig(_env_file=None)
        accounts = AccountManager(storage, config)
        transactions = TransactionProcessor(storage)
        lockers = LockerManager(storage, config)

        accounts.create_account(1001, "Alice", "10")
        transactions.deposit(1001, "5")
        locker = lockers.create_locker(1001)

        accounts.renumber_account(1001, 7, "Alice")

        assert [t.acc_no for t in transactions.get_transactions(7)] == [7]
        assert lockers.get_locker(7).locker_key == locker.locker_key
        assert storage.count("accounts") == 1
        storage.close()

    def test_largest_account_number(self):
        """The top of the signed 64-bit range is stored and queried normally"""
        storage = SQLiteStorage()
        accounts = AccountManager(storage, BackOfficeConfig(_env_file=None))
        transactions = TransactionProcessor(storage)

        accounts.create_account(MAX_ID, "Zed", "1")
        transactions.deposit(MAX_ID, "2")

        assert accounts.get_account(MAX_ID).balance == Decimal("3.00")
        assert len(transactions.get_transactions(MAX_ID)) == 1
        accounts.delete_account(MAX_ID)
        assert storage.count("accounts") == 0
        storage.close()
