"""
PlanService -- the plans contracts are opened against.

Each plan fixes the contract class, the per-period rate, the duration in
periods and the [min, max] funding bounds.
"""

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select

from accrual_kernel.db.types import parse_money, parse_rate
from accrual_kernel.domain.dtos import PlanInfo
from accrual_kernel.domain.values import ContractClass
from accrual_kernel.exceptions import PlanNotFoundError, ValidationError
from accrual_kernel.logging_config import get_logger
from accrual_kernel.models.contract import ContractPlan
from accrual_kernel.services.base import BaseService

logger = get_logger("services.plan")


class PlanService(BaseService):
    def create_plan(
        self,
        contract_class: ContractClass | str,
        name: str,
        min_amount: Decimal | int | str,
        rate: Decimal | str,
        duration_periods: int,
        max_amount: Decimal | int | str | None = None,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> PlanInfo:
        contract_class = ContractClass.parse(contract_class)
        if not name or not name.strip():
            raise ValidationError("Plan name must not be empty")
        min_amount = parse_money(min_amount)
        max_value = parse_money(max_amount) if max_amount is not None else None
        if max_value is not None and max_value < min_amount:
            raise ValidationError(
                f"Plan max amount {max_value} is below min amount {min_amount}"
            )
        rate = parse_rate(rate)
        if isinstance(duration_periods, bool) or not isinstance(duration_periods, int):
            raise ValidationError(f"Duration must be an integer, got {duration_periods!r}")
        if duration_periods <= 0:
            raise ValidationError(f"Duration must be positive, got {duration_periods}")

        now = self.clock.now()
        plan = ContractPlan(
            id=uuid4(),
            contract_class=contract_class,
            name=name.strip(),
            description=description,
            min_amount=min_amount,
            max_amount=max_value,
            rate=rate,
            duration_periods=duration_periods,
            is_active=True,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.session.add(plan)
        self.session.flush()

        logger.info(
            "plan_created",
            extra={
                "plan_id": str(plan.id),
                "contract_class": contract_class.value,
                "rate": rate,
                "duration_periods": duration_periods,
            },
        )
        return plan.to_dto()

    def _load(self, plan_id: UUID) -> ContractPlan:
        plan = self.session.get(ContractPlan, plan_id)
        if plan is None:
            raise PlanNotFoundError(str(plan_id))
        return plan

    def get_plan(self, plan_id: UUID) -> PlanInfo:
        return self._load(plan_id).to_dto()

    def list_plans(
        self,
        contract_class: ContractClass | str | None = None,
        active_only: bool = True,
    ) -> list[PlanInfo]:
        stmt = select(ContractPlan)
        if contract_class is not None:
            stmt = stmt.where(
                ContractPlan.contract_class == ContractClass.parse(contract_class)
            )
        if active_only:
            stmt = stmt.where(ContractPlan.is_active.is_(True))
        stmt = stmt.order_by(ContractPlan.min_amount, ContractPlan.name)
        return [plan.to_dto() for plan in self.session.execute(stmt).scalars()]

    def deactivate_plan(self, plan_id: UUID, actor_id: UUID | None = None) -> PlanInfo:
        """Stop new contracts on the plan.  Existing contracts are unaffected."""
        plan = self._load(plan_id)
        if plan.is_active:
            plan.is_active = False
            plan.updated_by_id = actor_id
            self.session.flush()
            logger.info("plan_deactivated", extra={"plan_id": str(plan.id)})
        return plan.to_dto()
