"""Caller identity dependencies.

Authentication is handled upstream; the gateway forwards the resolved
identity in X-Company-Id, X-User-Id and X-User-Role headers.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException

READ_ONLY_ROLES = frozenset({"viewer"})


@dataclass(frozen=True)
class CallerIdentity:
    company_id: str
    user_id: str
    role: str


def get_caller(
    x_company_id: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> CallerIdentity:
    """Caller identity from the forwarded headers; 401 if incomplete."""
    if not x_company_id or not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return CallerIdentity(
        company_id=x_company_id,
        user_id=x_user_id,
        role=(x_user_role or "member").lower(),
    )


def require_writer(caller: CallerIdentity = Depends(get_caller)) -> CallerIdentity:
    """Caller allowed to create transactions; 403 for read-only roles."""
    if caller.role in READ_ONLY_ROLES:
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return caller
