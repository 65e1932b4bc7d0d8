"""Plans, contract funding and operator status changes."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from accrual_api.deps import AdminDep, OwnerDep, ServicesDep
from accrual_api.schemas import (
    ContractOpenRequest,
    ContractOut,
    ContractStatusRequest,
    PlanCreateRequest,
    PlanOut,
)
from accrual_kernel.db.engine import unit_of_work
from accrual_kernel.exceptions import ValidationError
from accrual_kernel.selectors.contract_selector import ContractSelector

router = APIRouter(tags=["contracts"])

_ACTIONS = {
    "suspend": "suspend_contract",
    "resume": "resume_contract",
    "cancel": "cancel_contract",
    "complete": "complete_contract",
}


@router.post("/admin/plans", response_model=PlanOut, status_code=status.HTTP_201_CREATED)
def create_plan(body: PlanCreateRequest, services: ServicesDep, admin_id: AdminDep):
    with unit_of_work(services.session_factory, "create_plan") as session:
        plan = services.plans_for(session).create_plan(
            contract_class=body.contract_class,
            name=body.name,
            min_amount=body.min_amount,
            rate=body.rate,
            duration_periods=body.duration_periods,
            max_amount=body.max_amount,
            description=body.description,
            actor_id=admin_id,
        )
    return PlanOut.from_info(plan)


@router.get("/plans", response_model=list[PlanOut])
def list_plans(
    services: ServicesDep,
    contract_class: Optional[str] = Query(None, alias="contractClass"),
):
    with unit_of_work(services.session_factory, "list_plans") as session:
        plans = services.plans_for(session).list_plans(contract_class)
    return [PlanOut.from_info(p) for p in plans]


@router.post("/contracts", response_model=ContractOut, status_code=status.HTTP_201_CREATED)
def open_contract(body: ContractOpenRequest, services: ServicesDep, owner_id: OwnerDep):
    contract = services.funding.open_contract(owner_id, body.plan_id, body.amount)
    return ContractOut.from_info(contract)


@router.get("/contracts", response_model=list[ContractOut])
def list_contracts(services: ServicesDep, owner_id: OwnerDep):
    with unit_of_work(services.session_factory, "list_contracts") as session:
        contracts = ContractSelector(session).list_for_owner(owner_id)
    return [ContractOut.from_info(c) for c in contracts]


@router.put("/admin/contracts/{contract_id}/status", response_model=ContractOut)
def change_contract_status(
    contract_id: UUID,
    body: ContractStatusRequest,
    services: ServicesDep,
    admin_id: AdminDep,
):
    method = _ACTIONS.get(body.action.strip().lower())
    if method is None:
        raise ValidationError(
            f"Unknown contract action {body.action!r}; expected one of {sorted(_ACTIONS)}"
        )
    with unit_of_work(services.session_factory, "change_contract_status") as session:
        contract = getattr(services.contracts_for(session), method)(contract_id, admin_id)
    return ContractOut.from_info(contract)
