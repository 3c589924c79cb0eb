"""
Admin endpoints
"""

from fastapi import APIRouter, Depends

from .dependencies import get_back_office
from ..bank import BackOffice


router = APIRouter()


@router.delete("/wipe")
def wipe_all(system: BackOffice = Depends(get_back_office)):
    """Delete all accounts, transactions, lockers and requests"""
    removed = system.wipe_all()
    return {"msg": "All data wiped", "removed": removed}
