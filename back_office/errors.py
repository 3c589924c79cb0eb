"""
Domain Error Module

Every failure surfaced by the back office core is a BackOfficeError subclass
carrying a machine-readable kind and a human-readable message. The HTTP layer
maps kinds to status codes; the core never deals in transport details.
"""

from typing import Dict


class BackOfficeError(Exception):
    """Base class for all back office failures"""

    kind = "Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "msg": self.message}


class InvalidArgument(BackOfficeError):
    """Malformed or out-of-range input; nothing was changed"""
    kind = "InvalidArgument"


class InvalidAmount(BackOfficeError):
    """Deposit/withdraw amount that is not a positive money value"""
    kind = "InvalidAmount"


class NotFound(BackOfficeError):
    kind = "NotFound"


class Conflict(BackOfficeError):
    """Uniqueness violation or a duplicate pending request"""
    kind = "Conflict"


class InsufficientFunds(BackOfficeError):
    kind = "InsufficientFunds"


class Unauthorized(BackOfficeError):
    """Locker key does not match the stored record"""
    kind = "Unauthorized"


class InvalidState(BackOfficeError):
    """Request is not in the state the action requires"""
    kind = "InvalidState"


class StorageError(BackOfficeError):
    """Underlying persistence failure"""
    kind = "StorageError"
