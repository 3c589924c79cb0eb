"""
Shared dependencies for the API routers
"""

import threading
from typing import Optional

from ..bank import BackOffice


_back_office: Optional[BackOffice] = None
_back_office_lock = threading.Lock()


def get_back_office() -> BackOffice:
    """Process-wide BackOffice, created from configuration on first use"""
    global _back_office
    if _back_office is None:
        with _back_office_lock:
            if _back_office is None:
                _back_office = BackOffice.from_config()
    return _back_office
