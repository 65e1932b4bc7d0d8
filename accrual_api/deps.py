"""
Request dependencies.

Authentication happens upstream.  The gateway forwards the caller as
``X-Owner-Id`` (UUID) and ``X-Admin`` (``true``/``false``); this module
only reads those headers.
"""

from __future__ import annotations

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status

from accrual_services.container import LedgerServices


def get_services(request: Request) -> LedgerServices:
    return request.app.state.services


ServicesDep = Annotated[LedgerServices, Depends(get_services)]


def _parse_owner(value: Optional[str]) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Owner-Id is not a valid UUID",
        ) from None


def get_owner_id(x_owner_id: Annotated[Optional[str], Header()] = None) -> UUID:
    owner_id = _parse_owner(x_owner_id)
    if owner_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Owner-Id header",
        )
    return owner_id


def require_admin(
    x_admin: Annotated[Optional[str], Header()] = None,
    x_owner_id: Annotated[Optional[str], Header()] = None,
) -> Optional[UUID]:
    """Admin gate.  Returns the acting admin's id when one was forwarded."""
    if (x_admin or "").strip().lower() != "true":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return _parse_owner(x_owner_id)


OwnerDep = Annotated[UUID, Depends(get_owner_id)]
AdminDep = Annotated[Optional[UUID], Depends(require_admin)]
