"""
Input validation shared by the back office components.

All checks run before a transaction is opened so that malformed input never
takes a lock.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from .errors import InvalidArgument, InvalidAmount


CENT = Decimal("0.01")
MIN_NAME_LENGTH = 2
# Ids are stored as signed 64-bit integers by the SQL backends
MAX_ID = 2 ** 63 - 1


def check_id(value: Any, label: str = "id") -> int:
    """Return value if it is a positive integer that fits a BIGINT column"""
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value <= MAX_ID:
        raise InvalidArgument(f"Invalid {label}")
    return value


def check_acc_no(value: Any, label: str = "acc_no") -> int:
    return check_id(value, label)


def clean_name(value: Any) -> str:
    """Trim an account holder name and enforce the minimum length"""
    if not isinstance(value, str) or len(value.strip()) < MIN_NAME_LENGTH:
        raise InvalidArgument("Invalid name")
    return value.strip()


def to_money(value: Any) -> Optional[Decimal]:
    """
    Convert a number or numeric string to a Decimal rounded to cents.

    Returns None when the value is not a finite number or carries more than
    two decimal places.
    """
    if isinstance(value, bool) or value is None:
        return None
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            return None
        quantized = amount.quantize(CENT)
    except InvalidOperation:
        return None
    if quantized != amount:
        return None
    return quantized


def parse_amount(value: Any) -> Decimal:
    """Validate a deposit/withdraw amount"""
    amount = to_money(value)
    if amount is None or amount <= 0:
        raise InvalidAmount("Invalid amount")
    return amount


def parse_balance(value: Any) -> Decimal:
    """Validate an opening balance; None means zero"""
    if value is None:
        return Decimal("0.00")
    balance = to_money(value)
    if balance is None:
        raise InvalidArgument("Invalid balance")
    if balance < 0:
        raise InvalidArgument("Balance can't be negative")
    return balance
