"""
Request Workflow Module

Staff submit change requests (open an account, create a locker, renumber or
rename an account) which wait as PENDING until someone approves or rejects
them. Approval replays the requested change through the account, transaction
and locker components inside the same storage transaction that marks the
request APPROVED. A request whose change can no longer be applied (bad
payload, missing account, number collision, existing locker) is
auto-rejected instead.

    PENDING --approve--> APPROVED
    PENDING --reject---> REJECTED
    PENDING --approve, change not applicable--> REJECTED (auto)

APPROVED and REJECTED are terminal.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type, Union
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .accounts import AccountManager
from .errors import Conflict, InvalidArgument, InvalidState, NotFound
from .lockers import LockerManager
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord, ACCOUNTS_TABLE, REQUESTS_TABLE
from .transactions import TransactionProcessor
from .validation import MAX_ID, MIN_NAME_LENGTH, check_acc_no, check_id, to_money


class RequestType(Enum):
    """Kinds of staff change requests"""
    CREATE_ACCOUNT = "CREATE_ACCOUNT"
    CREATE_LOCKER = "CREATE_LOCKER"
    UPDATE_ACCOUNT = "UPDATE_ACCOUNT"


class RequestStatus(Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DecisionAction(Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


# Typed payloads, one per request type

class CreateAccountPayload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=MIN_NAME_LENGTH)
    opening_balance: Decimal = Field(
        default=Decimal("0"), ge=0, decimal_places=2,
        validation_alias=AliasChoices("opening_balance", "balance")
    )

    @field_validator("opening_balance")
    @classmethod
    def fits_ledger(cls, value: Decimal) -> Decimal:
        # Must also survive quantizing to cents, which caps the magnitude
        money = to_money(value)
        if money is None:
            raise ValueError("opening_balance is not a valid amount")
        return money


class CreateLockerPayload(BaseModel):
    pass


class UpdateAccountPayload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    new_acc_no: int = Field(gt=0, le=MAX_ID)
    name: str = Field(min_length=MIN_NAME_LENGTH, validation_alias=AliasChoices("name", "new_name"))


PAYLOAD_MODELS: Dict[RequestType, Type[BaseModel]] = {
    RequestType.CREATE_ACCOUNT: CreateAccountPayload,
    RequestType.CREATE_LOCKER: CreateLockerPayload,
    RequestType.UPDATE_ACCOUNT: UpdateAccountPayload,
}


def decode_payload(request_type: Union[RequestType, str], payload: Any) -> Optional[BaseModel]:
    """
    Decode a stored payload into its typed model.

    Accepts a mapping or a JSON string. Returns None when the payload does
    not decode; callers treat that as an invalid payload, not an error.
    """
    model = PAYLOAD_MODELS.get(request_type)
    if model is None:
        return None
    try:
        if isinstance(payload, (str, bytes)):
            return model.model_validate_json(payload)
        return model.model_validate(payload if payload is not None else {})
    except ValidationError:
        return None


@dataclass
class Request(StorageRecord):
    """
    Staff change request. acc_no is None for an account opening request
    until it is approved.
    """
    id: int
    acc_no: Optional[int]
    # Rows written by other versions may carry a type this one does not know
    request_type: Union[RequestType, str]
    payload: Any
    status: RequestStatus = RequestStatus.PENDING
    decided_at: Optional[datetime] = None
    reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Request':
        data = dict(data)
        try:
            data['request_type'] = RequestType(data['request_type'])
        except ValueError:
            pass
        data['status'] = RequestStatus(data['status'])
        return super().from_dict(data)

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING


@dataclass
class Decision:
    """Outcome of deciding a request"""
    request: Request
    action: DecisionAction
    reason: Optional[str] = None
    acc_no: Optional[int] = None
    locker_key: Optional[str] = None

    @property
    def approved(self) -> bool:
        return self.request.status == RequestStatus.APPROVED

    @property
    def auto_rejected(self) -> bool:
        """Approval was asked for but the change could not be applied"""
        return self.action == DecisionAction.APPROVE and not self.approved


def _coerce(enum_type: Type[Enum], value: Any, label: str) -> Enum:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).upper())
    except ValueError:
        raise InvalidArgument(f"Invalid {label}: {value}")


class RequestWorkflowEngine:
    """Queues staff requests and applies them on approval"""

    def __init__(
        self,
        storage: StorageInterface,
        account_manager: AccountManager,
        transaction_processor: TransactionProcessor,
        locker_manager: LockerManager
    ):
        self.storage = storage
        self.accounts = account_manager
        self.transactions = transaction_processor
        self.lockers = locker_manager
        self.requests_table = REQUESTS_TABLE
        self.logger = get_logger("back_office.workflows")

        self._approvers: Dict[RequestType, Callable[[Request], Decision]] = {
            RequestType.CREATE_ACCOUNT: self._approve_create_account,
            RequestType.CREATE_LOCKER: self._approve_create_locker,
            RequestType.UPDATE_ACCOUNT: self._approve_update_account,
        }

    # Submission

    def submit(self, request_type: Union[RequestType, str], acc_no: Optional[int] = None,
               payload: Any = None) -> Request:
        """
        Queue a request as PENDING

        Args:
            request_type: RequestType or its name
            acc_no: Target account; must be None for CREATE_ACCOUNT
            payload: Type-specific data, as a mapping or JSON string

        Raises:
            InvalidArgument: Unknown type, misplaced acc_no, or an invalid
                account opening payload
            NotFound: Target account does not exist
            Conflict: A PENDING request of this type already exists for the account
        """
        request_type = _coerce(RequestType, request_type, "request type")
        if payload is None:
            payload = {}

        if request_type == RequestType.CREATE_ACCOUNT:
            if acc_no is not None:
                raise InvalidArgument("Account opening requests cannot name an account")
            if decode_payload(request_type, payload) is None:
                raise InvalidArgument(
                    "Account opening needs a name of at least 2 characters "
                    "and a non-negative opening_balance"
                )
            with self.storage.atomic():
                request = self._insert(request_type, None, payload)
        else:
            acc_no = check_acc_no(acc_no)
            with self.storage.atomic():
                # The account row lock serializes submissions for the same account
                if self.storage.lock(ACCOUNTS_TABLE, str(acc_no)) is None:
                    raise NotFound("Account not found")
                if self._has_pending(acc_no, request_type):
                    raise Conflict(
                        f"A pending {request_type.value} request already exists for account {acc_no}"
                    )
                request = self._insert(request_type, acc_no, payload)

        log_action(
            self.logger, "info", "Request submitted",
            action="submit_request", request_id=request.id, acc_no=acc_no,
            extra={"request_type": request_type.value}
        )

        return request

    def _insert(self, request_type: RequestType, acc_no: Optional[int], payload: Any) -> Request:
        request = Request(
            created_at=datetime.now(timezone.utc),
            id=self.storage.next_id(self.requests_table),
            acc_no=acc_no,
            request_type=request_type,
            payload=payload
        )
        self.storage.insert(self.requests_table, str(request.id), request.to_dict())
        return request

    def _has_pending(self, acc_no: int, request_type: RequestType) -> bool:
        return bool(self.storage.find(self.requests_table, {
            "acc_no": acc_no,
            "request_type": request_type.value,
            "status": RequestStatus.PENDING.value
        }))

    # Queries

    def get_request(self, request_id: int) -> Request:
        data = self.storage.load(self.requests_table, str(check_id(request_id, "request id")))
        if data is None:
            raise NotFound("Request not found")
        return Request.from_dict(data)

    def list_requests(
        self,
        status: Union[RequestStatus, str, None] = None,
        request_type: Union[RequestType, str, None] = None,
        acc_no: Optional[int] = None
    ) -> List[Request]:
        """Requests matching the given filters, newest first"""
        filters: Dict[str, Any] = {}
        if status is not None:
            filters["status"] = _coerce(RequestStatus, status, "status").value
        if request_type is not None:
            filters["request_type"] = _coerce(RequestType, request_type, "request type").value
        if acc_no is not None:
            filters["acc_no"] = check_acc_no(acc_no)

        requests = [Request.from_dict(row) for row in self.storage.find(self.requests_table, filters)]
        return sorted(requests, key=lambda r: r.id, reverse=True)

    # Decisions

    def decide(self, request_id: int, action: Union[DecisionAction, str]) -> Decision:
        """
        Approve or reject a PENDING request

        Approval applies the requested change atomically with the status
        change. A change that cannot be applied auto-rejects the request and
        is reported through Decision.auto_rejected rather than raised.

        Raises:
            InvalidArgument: Unknown action or bad id
            NotFound: No such request
            InvalidState: The request was already decided
        """
        action = _coerce(DecisionAction, action, "action")
        request_id = check_id(request_id, "request id")

        with self.storage.atomic():
            data = self.storage.lock(self.requests_table, str(request_id))
            if data is None:
                raise NotFound("Request not found")

            request = Request.from_dict(data)
            if not request.is_pending:
                raise InvalidState(f"Request {request_id} is already {request.status.value}")

            if action == DecisionAction.REJECT:
                decision = self._finish(request, action, RequestStatus.REJECTED)
            else:
                approver = self._approvers.get(request.request_type)
                if approver is None:
                    decision = self._auto_reject(request, f"Unsupported request type: {request.request_type}")
                else:
                    decision = approver(request)

        log_action(
            self.logger, "info" if not decision.auto_rejected else "warning",
            f"Request {decision.request.status.value.lower()}",
            action="decide_request", request_id=request_id, acc_no=decision.request.acc_no,
            extra={
                "requested_action": action.value,
                "auto_rejected": decision.auto_rejected,
                "reason": decision.reason
            }
        )

        return decision

    def _finish(self, request: Request, action: DecisionAction, status: RequestStatus,
                reason: Optional[str] = None, **effects) -> Decision:
        request.status = status
        request.decided_at = datetime.now(timezone.utc)
        request.reason = reason
        self.storage.save(self.requests_table, str(request.id), request.to_dict())
        return Decision(request=request, action=action, reason=reason, **effects)

    def _auto_reject(self, request: Request, reason: str) -> Decision:
        return self._finish(request, DecisionAction.APPROVE, RequestStatus.REJECTED, reason)

    def _approve(self, request: Request, **effects) -> Decision:
        return self._finish(request, DecisionAction.APPROVE, RequestStatus.APPROVED, **effects)

    def _account_exists(self, acc_no: Optional[int]) -> bool:
        return acc_no is not None and self.storage.lock(ACCOUNTS_TABLE, str(acc_no)) is not None

    def _approve_create_account(self, request: Request) -> Decision:
        payload = decode_payload(RequestType.CREATE_ACCOUNT, request.payload)
        if payload is None:
            return self._auto_reject(request, "Invalid account opening payload")

        acc_no = self.accounts.next_account_number()
        try:
            # Validation fails before anything is written
            self.accounts.create_account(acc_no, payload.name, payload.opening_balance)
        except InvalidArgument as e:
            return self._auto_reject(request, e.message)
        self.transactions.record_opening(acc_no, payload.opening_balance)

        request.acc_no = acc_no
        return self._approve(request, acc_no=acc_no)

    def _approve_create_locker(self, request: Request) -> Decision:
        if not self._account_exists(request.acc_no):
            return self._auto_reject(request, "Account not found")
        if self.lockers.find_locker(request.acc_no) is not None:
            return self._auto_reject(request, "Locker already exists for this account")

        locker = self.lockers.create_locker(request.acc_no)
        return self._approve(request, acc_no=request.acc_no, locker_key=locker.locker_key)

    def _approve_update_account(self, request: Request) -> Decision:
        payload = decode_payload(RequestType.UPDATE_ACCOUNT, request.payload)
        if payload is None:
            return self._auto_reject(request, "Invalid account update payload")

        old_acc_no = request.acc_no
        if not self._account_exists(old_acc_no):
            return self._auto_reject(request, "Account not found")
        if payload.new_acc_no != old_acc_no and self.storage.exists(ACCOUNTS_TABLE, str(payload.new_acc_no)):
            return self._auto_reject(request, "New account number already exists")

        self.accounts.renumber_account(old_acc_no, payload.new_acc_no, payload.name)

        # The cascade already moved this row; keep the in-hand copy in step
        request.acc_no = payload.new_acc_no
        return self._approve(request, acc_no=payload.new_acc_no)
