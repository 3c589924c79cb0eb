"""
Staff request/approval endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from .dependencies import get_back_office
from .schemas import (
    DecisionRequest, SubmitRequest,
    decision_response, request_response, requests_response
)
from ..bank import BackOffice


router = APIRouter()


@router.post("")
def submit_request(
    request: SubmitRequest,
    system: BackOffice = Depends(get_back_office)
):
    """Queue a request for approval"""
    queued = system.workflow_engine.submit(
        request.request_type, request.acc_no, request.payload
    )
    return {"msg": "Request submitted", "request": request_response(queued)}


@router.get("")
def list_requests(
    status: Optional[str] = None,
    request_type: Optional[str] = None,
    acc_no: Optional[int] = None,
    system: BackOffice = Depends(get_back_office)
):
    """List requests, newest first"""
    return requests_response(
        system.workflow_engine.list_requests(status=status, request_type=request_type, acc_no=acc_no)
    )


@router.get("/{request_id}")
def get_request(request_id: int, system: BackOffice = Depends(get_back_office)):
    return request_response(system.workflow_engine.get_request(request_id))


@router.post("/{request_id}/decision")
def decide_request(
    request_id: int,
    request: DecisionRequest,
    system: BackOffice = Depends(get_back_office)
):
    """Approve or reject a pending request"""
    decision = system.workflow_engine.decide(request_id, request.action)
    body = decision_response(decision)

    if decision.auto_rejected:
        # The request was decided, but not the way the caller asked
        body.update({"kind": "AutoRejected", "msg": decision.reason})
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)

    body["msg"] = f"Request {decision.request.status.value.lower()}"
    return body
