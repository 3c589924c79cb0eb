"""
Pydantic schemas for API requests and responses
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ..accounts import Account
from ..lockers import Locker
from ..transactions import Transaction
from ..workflows import Decision, Request


# Request bodies. Fields are coerced loosely here; the core components do the
# real validation so every entry point enforces the same rules.

class CreateAccountRequest(BaseModel):
    acc_no: Optional[int] = None
    name: Optional[str] = None
    balance: Optional[Any] = Field(None, description="Opening balance, number or decimal string")


class AmountRequest(BaseModel):
    amount: Optional[Any] = Field(None, description="Positive amount with at most 2 decimal places")


class FullUpdateRequest(BaseModel):
    new_acc_no: Optional[int] = None
    name: Optional[str] = None


class LockerAccessRequest(BaseModel):
    acc_no: Optional[int] = None
    locker_key: Optional[Any] = None


class SubmitRequest(BaseModel):
    request_type: str = Field(..., description="CREATE_ACCOUNT, CREATE_LOCKER or UPDATE_ACCOUNT")
    acc_no: Optional[int] = None
    payload: Optional[Any] = Field(None, description="Type-specific object or JSON string")


class DecisionRequest(BaseModel):
    action: str = Field(..., description="APPROVE or REJECT (case insensitive)")


# Response serializers; money travels as decimal strings

def account_response(account: Account) -> Dict[str, Any]:
    return {
        "acc_no": account.acc_no,
        "name": account.name,
        "balance": str(account.balance),
        "created_at": account.created_at.isoformat()
    }


def transaction_response(transaction: Transaction) -> Dict[str, Any]:
    return {
        "id": transaction.id,
        "acc_no": transaction.acc_no,
        "type": transaction.transaction_type.value,
        "amount": str(transaction.amount),
        "before_balance": str(transaction.before_balance),
        "after_balance": str(transaction.after_balance),
        "created_at": transaction.created_at.isoformat()
    }


def locker_response(locker: Locker) -> Dict[str, Any]:
    return {
        "acc_no": locker.acc_no,
        "locker_key": locker.locker_key,
        "created_at": locker.created_at.isoformat()
    }


def request_response(request: Request) -> Dict[str, Any]:
    request_type = request.request_type
    return {
        "id": request.id,
        "acc_no": request.acc_no,
        "request_type": getattr(request_type, "value", request_type),
        "payload": request.payload,
        "status": request.status.value,
        "reason": request.reason,
        "created_at": request.created_at.isoformat(),
        "decided_at": request.decided_at.isoformat() if request.decided_at else None
    }


def decision_response(decision: Decision) -> Dict[str, Any]:
    result = {
        "request": request_response(decision.request),
        "approved": decision.approved,
        "auto_rejected": decision.auto_rejected,
    }
    if decision.acc_no is not None:
        result["acc_no"] = decision.acc_no
    if decision.locker_key is not None:
        result["locker_key"] = decision.locker_key
    return result


def requests_response(requests: List[Request]) -> List[Dict[str, Any]]:
    return [request_response(request) for request in requests]
