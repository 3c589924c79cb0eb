"""
Back Office System

Wires one storage handle into every component. The API layer and scripts
work against a BackOffice instance rather than building components
themselves.
"""

from typing import Any, Dict, Optional

from .accounts import AccountManager
from .config import BackOfficeConfig, get_config
from .lockers import LockerManager
from .logging_config import get_logger, log_action
from .storage import (
    StorageInterface, create_storage,
    ACCOUNTS_TABLE, TRANSACTIONS_TABLE, LOCKERS_TABLE, REQUESTS_TABLE
)
from .transactions import TransactionProcessor
from .workflows import RequestWorkflowEngine


# Children before parents
WIPE_ORDER = (TRANSACTIONS_TABLE, REQUESTS_TABLE, LOCKERS_TABLE, ACCOUNTS_TABLE)


class BackOffice:
    """Back office with all components initialized"""

    def __init__(self, storage: StorageInterface, config: Optional[BackOfficeConfig] = None):
        self.config = config or get_config()
        self.storage = storage
        self.logger = get_logger("back_office.bank")

        self.account_manager = AccountManager(self.storage, self.config)
        self.transaction_processor = TransactionProcessor(self.storage)
        self.locker_manager = LockerManager(self.storage, self.config)
        self.workflow_engine = RequestWorkflowEngine(
            self.storage, self.account_manager,
            self.transaction_processor, self.locker_manager
        )

    @classmethod
    def from_config(cls, config: Optional[BackOfficeConfig] = None) -> 'BackOffice':
        """Build a back office on the storage named by config.database_url"""
        config = config or get_config()
        storage = create_storage(config.database_url, timeout=config.database_timeout)
        return cls(storage, config)

    def wipe_all(self) -> Dict[str, int]:
        """
        Delete every transaction, request, locker and account in one
        transaction. Id sequences are kept so ids never repeat.
        """
        with self.storage.atomic():
            removed = {table: self.storage.count(table) for table in WIPE_ORDER}
            for table in WIPE_ORDER:
                self.storage.clear_table(table)

        log_action(
            self.logger, "warning", "All data wiped",
            action="wipe_all", extra=removed
        )

        return removed

    def health(self) -> Dict[str, Any]:
        """Row counts per table; a storage failure propagates as StorageError"""
        return {
            "accounts": self.storage.count(ACCOUNTS_TABLE),
            "transactions": self.storage.count(TRANSACTIONS_TABLE),
            "lockers": self.storage.count(LOCKERS_TABLE),
            "requests": self.storage.count(REQUESTS_TABLE),
        }

    def close(self) -> None:
        self.storage.close()
