"""
Locker access endpoint
"""

from fastapi import APIRouter, Depends

from .dependencies import get_back_office
from .schemas import LockerAccessRequest
from ..bank import BackOffice


router = APIRouter()


@router.post("/access")
def access_locker(
    request: LockerAccessRequest,
    system: BackOffice = Depends(get_back_office)
):
    """Check a locker key against the account's locker"""
    system.locker_manager.verify_access(request.acc_no, request.locker_key)
    return {"msg": "Locker access granted"}
