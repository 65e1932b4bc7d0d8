"""Withdrawal requests and their admin transitions."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter

from accrual_api.deps import AdminDep, OwnerDep, ServicesDep
from accrual_api.schemas import (
    WithdrawalCreateRequest,
    WithdrawalOut,
    WithdrawalStatusRequest,
)
from accrual_kernel.db.engine import unit_of_work
from accrual_kernel.selectors.contract_selector import WithdrawalSelector
from accrual_services.withdrawal_settlement import parse_withdrawal_status

router = APIRouter(prefix="/withdrawals", tags=["withdrawals"])


@router.post("", response_model=WithdrawalOut, status_code=201)
def request_withdrawal(body: WithdrawalCreateRequest, services: ServicesDep, owner_id: OwnerDep):
    with unit_of_work(services.session_factory, "request_withdrawal") as session:
        info = services.settlement_for(session).request_withdrawal(
            owner_id, body.amount, body.method, body.account_details
        )
    return WithdrawalOut.from_info(info)


@router.get("", response_model=list[WithdrawalOut])
def list_withdrawals(
    services: ServicesDep,
    owner_id: OwnerDep,
    status: Optional[str] = None,
):
    parsed = parse_withdrawal_status(status) if status else None
    with unit_of_work(services.session_factory, "list_withdrawals") as session:
        requests = WithdrawalSelector(session).list_for_owner(owner_id, parsed)
    return [WithdrawalOut.from_info(r) for r in requests]


@router.put("/{request_id}", response_model=WithdrawalOut)
def update_withdrawal(
    request_id: UUID,
    body: WithdrawalStatusRequest,
    services: ServicesDep,
    admin_id: AdminDep,
):
    """Approve, decline or mark processed.  Balance effects commit with the status."""
    with unit_of_work(services.session_factory, "settle_withdrawal") as session:
        result = services.settlement_for(session).transition(
            request_id, body.status, actor_id=admin_id, notes=body.notes
        )
    return WithdrawalOut.from_info(result.request)
