"""
Account management endpoints
"""

from fastapi import APIRouter, Depends

from .dependencies import get_back_office
from .schemas import (
    AmountRequest, CreateAccountRequest, FullUpdateRequest,
    account_response, locker_response, transaction_response
)
from ..bank import BackOffice


router = APIRouter()


@router.post("")
def create_account(
    request: CreateAccountRequest,
    system: BackOffice = Depends(get_back_office)
):
    """Create a new account"""
    account = system.account_manager.create_account(
        acc_no=request.acc_no,
        name=request.name,
        initial_balance=request.balance
    )
    return {
        "msg": "Account created successfully",
        "account": account_response(account)
    }


@router.get("")
def list_accounts(system: BackOffice = Depends(get_back_office)):
    """List all accounts ordered by account number"""
    return [account_response(account) for account in system.account_manager.list_accounts()]


@router.get("/next-number")
def next_account_number(system: BackOffice = Depends(get_back_office)):
    """Account number the next approved opening request would get"""
    return {"next_acc_no": system.account_manager.next_account_number()}


@router.get("/{acc_no}")
def get_account(acc_no: int, system: BackOffice = Depends(get_back_office)):
    """Get account details"""
    return account_response(system.account_manager.get_account(acc_no))


@router.delete("/{acc_no}")
def delete_account(acc_no: int, system: BackOffice = Depends(get_back_office)):
    """Delete an account with its transactions, locker and requests"""
    system.account_manager.delete_account(acc_no)
    return {"msg": "Account deleted"}


@router.post("/{acc_no}/deposit")
def deposit(
    acc_no: int,
    request: AmountRequest,
    system: BackOffice = Depends(get_back_office)
):
    """Make a deposit"""
    before, after = system.transaction_processor.deposit(acc_no, request.amount)
    return {"msg": "Deposit successful", "before": str(before), "after": str(after)}


@router.post("/{acc_no}/withdraw")
def withdraw(
    acc_no: int,
    request: AmountRequest,
    system: BackOffice = Depends(get_back_office)
):
    """Make a withdrawal"""
    before, after = system.transaction_processor.withdraw(acc_no, request.amount)
    return {"msg": "Withdraw successful", "before": str(before), "after": str(after)}


@router.get("/{acc_no}/transactions")
def get_account_transactions(acc_no: int, system: BackOffice = Depends(get_back_office)):
    """Transaction history for an account, newest first"""
    transactions = system.transaction_processor.get_transactions(acc_no)
    return [transaction_response(txn) for txn in transactions]


@router.put("/{old_acc_no}/full-update")
def full_update(
    old_acc_no: int,
    request: FullUpdateRequest,
    system: BackOffice = Depends(get_back_office)
):
    """Change an account's number and name, carrying its history along"""
    account = system.account_manager.renumber_account(
        old_acc_no, request.new_acc_no, request.name
    )
    return {
        "msg": "Account updated (acc_no + name)",
        "account": account_response(account)
    }


@router.post("/{acc_no}/locker")
def create_locker(acc_no: int, system: BackOffice = Depends(get_back_office)):
    """Create the account's locker; the key never changes afterwards"""
    locker = system.locker_manager.create_locker(acc_no)
    return {"msg": "Locker created", "locker_key": locker.locker_key}


@router.get("/{acc_no}/locker")
def get_locker(acc_no: int, system: BackOffice = Depends(get_back_office)):
    return locker_response(system.locker_manager.get_locker(acc_no))
