"""Distribution trigger and cooldown status."""

from __future__ import annotations

from fastapi import APIRouter

from accrual_api.deps import AdminDep, ServicesDep
from accrual_api.schemas import CooldownOut, DistributeRequest, DistributionOut
from accrual_kernel.db.engine import unit_of_work
from accrual_kernel.domain.values import ContractClass

router = APIRouter(prefix="/distribute", tags=["distribution"])


@router.post("", response_model=DistributionOut)
def distribute(body: DistributeRequest, services: ServicesDep, admin_id: AdminDep):
    """Credit every owed period for one contract class.

    429 with ``{onCooldown: true, remainingSeconds}`` while the class is
    inside its cooldown window.
    """
    summary = services.orchestrator.run_distribution(body.contract_class, actor_id=admin_id)
    return DistributionOut.from_summary(summary)


@router.get("/{contract_class}/cooldown", response_model=CooldownOut)
def cooldown_status(contract_class: str, services: ServicesDep, admin_id: AdminDep):
    parsed = ContractClass.parse(contract_class)
    window = services.orchestrator.cooldown_window(parsed)
    with unit_of_work(services.session_factory, "cooldown_status") as session:
        status = services.cooldowns_for(session).status(parsed, window)
    return CooldownOut.from_status(status)
