"""Bearer-token authentication. The token is the tenant id."""

from typing import Optional

from fastapi import Depends, Header, HTTPException

from .dependencies import get_ledger
from .ledger import JobLedger


def get_current_tenant(
    authorization: Optional[str] = Header(None),
    ledger: JobLedger = Depends(get_ledger),
) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authorization header missing or invalid format")

    token = authorization[len("Bearer "):].strip()
    if not token or not ledger.user_exists(token):
        raise HTTPException(status_code=401, detail="Invalid user token")

    return token
