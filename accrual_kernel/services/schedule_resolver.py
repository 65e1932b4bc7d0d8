"""
ScheduleResolver -- which periods of a contract are owed and unrecorded.

Reads the contract and its recorded period keys, then delegates the
arithmetic to domain/schedule.py.  Read-only; takes no locks.  The answer
is advisory: the ledger writer's unique constraint is what finally decides
whether a period is credited.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from accrual_kernel.domain.accrual import period_profit
from accrual_kernel.domain.dtos import ContractSchedule
from accrual_kernel.domain.schedule import resolve_schedule
from accrual_kernel.exceptions import ContractNotFoundError
from accrual_kernel.logging_config import get_logger
from accrual_kernel.models.contract import Contract
from accrual_kernel.models.distribution import ProfitDistributionRecord
from accrual_kernel.services.base import BaseService

logger = get_logger("services.schedule_resolver")


class ScheduleResolver(BaseService):
    def resolve(self, contract_id: UUID, now: datetime | None = None) -> ContractSchedule:
        contract = self.session.get(Contract, contract_id, populate_existing=True)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return self.resolve_contract(contract, now)

    def resolve_contract(
        self,
        contract: Contract,
        now: datetime | None = None,
    ) -> ContractSchedule:
        now = now or self.clock.now()
        recorded = self.session.execute(
            select(ProfitDistributionRecord.period_key).where(
                ProfitDistributionRecord.contract_id == contract.id
            )
        ).scalars()
        state = resolve_schedule(
            start=contract.start_at,
            now=now,
            unit=contract.period_unit,
            duration=contract.duration_periods,
            recorded_keys=recorded,
        )
        logger.debug(
            "schedule_resolved",
            extra={
                "contract_id": str(contract.id),
                "elapsed": state.elapsed,
                "missing": len(state.missing),
                "ready_to_complete": state.ready_to_complete,
            },
        )
        return ContractSchedule(
            contract_id=contract.id,
            owner_id=contract.owner_id,
            status=contract.status,
            elapsed=state.elapsed,
            duration=contract.duration_periods,
            missing=state.missing,
            ready_to_complete=state.ready_to_complete,
            period_amount=period_profit(contract.principal, contract.rate),
        )
