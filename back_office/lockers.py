"""
Safe-Deposit Locker Module

Each account can hold at most one locker. The locker key is generated once
from a cryptographically secure source and never changes.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Optional
import hmac
import secrets
import string

from .config import BackOfficeConfig, get_config
from .errors import Conflict, InvalidArgument, NotFound, Unauthorized
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord, ACCOUNTS_TABLE, LOCKERS_TABLE
from .validation import check_acc_no


KEY_ALPHABET = string.ascii_uppercase + string.digits
KEY_GROUP_LENGTH = 8


@dataclass
class Locker(StorageRecord):
    acc_no: int
    locker_key: str


class LockerManager:
    """Issues locker keys and checks key-based access"""

    def __init__(self, storage: StorageInterface, config: Optional[BackOfficeConfig] = None):
        config = config or get_config()
        self.storage = storage
        self.lockers_table = LOCKERS_TABLE
        self.key_prefix = config.locker_key_prefix
        self.key_min_length = config.locker_key_min_length
        self.logger = get_logger("back_office.lockers")

    def generate_key(self) -> str:
        """Opaque key of the form LOCK-XXXXXXXX-XXXXXXXX"""
        groups = [
            "".join(secrets.choice(KEY_ALPHABET) for _ in range(KEY_GROUP_LENGTH))
            for _ in range(2)
        ]
        return "-".join([self.key_prefix] + groups)

    def create_locker(self, acc_no: int) -> Locker:
        """
        Create the locker of an account

        The returned Locker carries the new key; it is not logged.

        Raises:
            NotFound: The account does not exist
            Conflict: The account already has a locker
        """
        acc_no = check_acc_no(acc_no, "account number")

        with self.storage.atomic():
            if self.storage.lock(ACCOUNTS_TABLE, str(acc_no)) is None:
                raise NotFound("Account not found")
            if self.storage.exists(self.lockers_table, str(acc_no)):
                raise Conflict("Locker already exists for this account")

            locker = Locker(
                created_at=datetime.now(timezone.utc),
                acc_no=acc_no,
                locker_key=self.generate_key()
            )
            self.storage.insert(self.lockers_table, str(acc_no), locker.to_dict())

        log_action(
            self.logger, "info", "Locker created",
            action="create_locker", acc_no=acc_no
        )

        return locker

    def find_locker(self, acc_no: int) -> Optional[Locker]:
        data = self.storage.load(self.lockers_table, str(acc_no))
        if data:
            return Locker.from_dict(data)
        return None

    def get_locker(self, acc_no: int) -> Locker:
        locker = self.find_locker(check_acc_no(acc_no, "account number"))
        if locker is None:
            raise NotFound("Locker not found")
        return locker

    def verify_access(self, acc_no: int, locker_key: Any) -> None:
        """
        Check a locker key. Read-only: nothing is recorded or issued.

        Raises:
            InvalidArgument: Bad account number or a key shorter than the minimum length
            Unauthorized: No locker matches the account and key
        """
        acc_no = check_acc_no(acc_no, "account number")
        if not isinstance(locker_key, str) or len(locker_key) < self.key_min_length:
            raise InvalidArgument("Invalid locker key")

        locker = self.find_locker(acc_no)
        if locker is None or not hmac.compare_digest(
            locker.locker_key.encode(), locker_key.encode()
        ):
            log_action(
                self.logger, "warning", "Locker access denied",
                action="verify_locker_access", acc_no=acc_no
            )
            raise Unauthorized("Wrong locker key")

        log_action(
            self.logger, "info", "Locker access granted",
            action="verify_locker_access", acc_no=acc_no
        )
