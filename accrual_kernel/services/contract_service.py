"""
ContractService -- contract funding and lifecycle.

Responsibility:
    - Opening a contract: the principal moves out of the owner's deposit
      component in the same unit of work that creates the contract.
    - Completion, after crediting any elapsed owed periods, with the
      principal returned to deposit when configured.  A contract with
      unrecorded periods cannot complete.
    - Operator status changes: suspend, resume, cancel.

Invariants enforced:
    - period_unit always follows the contract class.
    - Status changes follow CONTRACT_TRANSITIONS; completed and cancelled
      are terminal.
    - The contract row is locked before the owner's balance row.

Failure modes:
    - PlanNotFoundError, PlanLimitError, InsufficientFundsError from
      open_contract().
    - ContractNotFoundError, InvalidStatusTransitionError from the
      lifecycle methods.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from accrual_kernel.db.types import ZERO, parse_money, parse_rate
from accrual_kernel.domain.clock import Clock
from accrual_kernel.domain.dtos import ContractInfo
from accrual_kernel.domain.policy import BalancePolicy
from accrual_kernel.domain.values import (
    CONTRACT_TRANSITIONS,
    BalanceComponent,
    ContractClass,
    ContractStatus,
    Direction,
    TransactionKind,
)
from accrual_kernel.exceptions import (
    InvalidStatusTransitionError,
    PlanLimitError,
    PlanNotFoundError,
    ValidationError,
)
from accrual_kernel.logging_config import get_logger
from accrual_kernel.models.contract import Contract, ContractPlan
from accrual_kernel.services.base import BaseService
from accrual_kernel.services.ledger_writer import LedgerWriter
from accrual_kernel.services.schedule_resolver import ScheduleResolver

logger = get_logger("services.contract")


class ContractService(BaseService):
    def __init__(
        self,
        session: Session,
        policy: BalancePolicy | None = None,
        clock: Clock | None = None,
        return_principal_on_completion: bool = True,
    ):
        super().__init__(session, clock)
        self.writer = LedgerWriter(session, policy, self.clock)
        self.return_principal_on_completion = return_principal_on_completion

    # ------------------------------------------------------------------
    # Funding
    # ------------------------------------------------------------------

    def open_contract(
        self,
        owner_id: UUID,
        plan_id: UUID,
        amount: Decimal | int | str,
        actor_id: UUID | None = None,
    ) -> ContractInfo:
        """Fund a contract on ``plan_id`` from the owner's deposit."""
        plan = self.session.get(ContractPlan, plan_id)
        if plan is None:
            raise PlanNotFoundError(str(plan_id))
        amount = parse_money(amount)
        if not plan.is_active:
            raise PlanLimitError(str(plan.id), amount, "plan is not active")
        if not plan.accepts(amount):
            bounds = f"{plan.min_amount}..{plan.max_amount or 'unbounded'}"
            raise PlanLimitError(str(plan.id), amount, f"amount outside {bounds}")

        return self.create_contract(
            owner_id=owner_id,
            contract_class=plan.contract_class,
            principal=amount,
            rate=plan.rate,
            duration_periods=plan.duration_periods,
            plan_id=plan.id,
            actor_id=actor_id or owner_id,
        )

    def create_contract(
        self,
        owner_id: UUID,
        contract_class: ContractClass | str,
        principal: Decimal | int | str,
        rate: Decimal | str,
        duration_periods: int,
        start_at: datetime | None = None,
        plan_id: UUID | None = None,
        fund_from_deposit: bool = True,
        actor_id: UUID | None = None,
    ) -> ContractInfo:
        """
        Create a contract with explicit terms.

        ``start_at`` defaults to now.  With ``fund_from_deposit=False`` no
        balance moves; used when importing contracts funded elsewhere.
        """
        contract_class = ContractClass.parse(contract_class)
        principal = parse_money(principal)
        rate = parse_rate(rate)
        if isinstance(duration_periods, bool) or not isinstance(duration_periods, int):
            raise ValidationError(f"Duration must be an integer, got {duration_periods!r}")
        if duration_periods <= 0:
            raise ValidationError(f"Duration must be positive, got {duration_periods}")
        now = self.clock.now()
        start_at = start_at or now
        if start_at.tzinfo is None:
            raise ValidationError("Contract start must be timezone-aware")

        contract = Contract(
            id=uuid4(),
            owner_id=owner_id,
            plan_id=plan_id,
            contract_class=contract_class,
            principal=principal,
            rate=rate,
            period_unit=contract_class.period_unit,
            duration_periods=duration_periods,
            start_at=start_at,
            status=ContractStatus.ACTIVE,
            accumulated_profit=ZERO,
            periods_distributed=0,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.session.add(contract)
        self.session.flush()

        if fund_from_deposit:
            self.writer.adjust_balance(
                owner_id=owner_id,
                component=BalanceComponent.DEPOSIT,
                amount=principal,
                direction=Direction.DEBIT,
                kind=TransactionKind.INVESTMENT,
                reference_id=contract.id,
                description=f"Funded {contract_class.value} contract",
                actor_id=actor_id,
            )

        logger.info(
            "contract_opened",
            extra={
                "contract_id": str(contract.id),
                "owner_id": str(owner_id),
                "contract_class": contract_class.value,
                "principal": principal,
                "duration_periods": duration_periods,
                "funded": fund_from_deposit,
            },
        )
        return contract.to_dto()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _transition(
        self,
        contract: Contract,
        target: ContractStatus,
        actor_id: UUID | None,
    ) -> ContractStatus:
        current = contract.status
        if target not in CONTRACT_TRANSITIONS[current]:
            raise InvalidStatusTransitionError(
                "Contract", str(contract.id), current.value, target.value
            )
        contract.status = target
        contract.updated_by_id = actor_id
        return current

    def complete_contract(
        self,
        contract_id: UUID,
        actor_id: UUID | None = None,
    ) -> ContractInfo:
        """
        Mark an active contract completed with ``end = now``.

        Refused until every period of the full duration has elapsed.
        Elapsed periods not yet recorded are then credited in this unit of
        work before the status changes, so no owed period is forfeited.

        When principal return is enabled the principal is credited back to
        deposit with a ``principal_return`` transaction.
        """
        contract = self.writer.lock_contract(contract_id)
        if ContractStatus.COMPLETED not in CONTRACT_TRANSITIONS[contract.status]:
            raise InvalidStatusTransitionError(
                "Contract",
                str(contract.id),
                contract.status.value,
                ContractStatus.COMPLETED.value,
            )

        schedule = ScheduleResolver(self.session, self.clock).resolve_contract(contract)
        if schedule.elapsed < contract.duration_periods:
            raise InvalidStatusTransitionError(
                "Contract",
                str(contract.id),
                contract.status.value,
                ContractStatus.COMPLETED.value,
                reason=(
                    f"{schedule.elapsed} of {contract.duration_periods} periods elapsed"
                ),
            )
        for slot in schedule.missing:
            self.writer.apply_accrual(contract.id, slot, schedule.period_amount, actor_id)

        previous = self._transition(contract, ContractStatus.COMPLETED, actor_id)
        contract.end_at = self.clock.now()
        self.session.flush()

        if self.return_principal_on_completion:
            self.writer.adjust_balance(
                owner_id=contract.owner_id,
                component=BalanceComponent.DEPOSIT,
                amount=contract.principal,
                direction=Direction.CREDIT,
                kind=TransactionKind.PRINCIPAL_RETURN,
                reference_id=contract.id,
                description=f"Principal returned from completed {contract.contract_class.value}",
                actor_id=actor_id,
            )

        logger.info(
            "contract_completed",
            extra={
                "contract_id": str(contract.id),
                "owner_id": str(contract.owner_id),
                "previous_status": previous.value,
                "periods_distributed": contract.periods_distributed,
                "periods_backfilled": len(schedule.missing),
                "accumulated_profit": contract.accumulated_profit,
                "principal_returned": self.return_principal_on_completion,
            },
        )
        return contract.to_dto()

    def complete_if_fully_distributed(
        self,
        contract_id: UUID,
        actor_id: UUID | None = None,
    ) -> ContractInfo | None:
        """
        Complete an active contract whose every period is recorded.

        Returns None (and changes nothing) when the contract is not active
        or still has periods to credit, e.g. because a concurrent run
        completed it first.
        """
        contract = self.writer.lock_contract(contract_id)
        if not (contract.is_active and contract.fully_distributed):
            return None
        return self.complete_contract(contract_id, actor_id)

    def suspend_contract(self, contract_id: UUID, actor_id: UUID | None = None) -> ContractInfo:
        return self._change_status(contract_id, ContractStatus.SUSPENDED, actor_id)

    def resume_contract(self, contract_id: UUID, actor_id: UUID | None = None) -> ContractInfo:
        return self._change_status(contract_id, ContractStatus.ACTIVE, actor_id)

    def cancel_contract(self, contract_id: UUID, actor_id: UUID | None = None) -> ContractInfo:
        """Stop accrual.  Sets ``end``; no balance changes."""
        return self._change_status(contract_id, ContractStatus.CANCELLED, actor_id)

    def _change_status(
        self,
        contract_id: UUID,
        target: ContractStatus,
        actor_id: UUID | None,
    ) -> ContractInfo:
        contract = self.writer.lock_contract(contract_id)
        previous = self._transition(contract, target, actor_id)
        if target == ContractStatus.CANCELLED:
            contract.end_at = self.clock.now()
        self.session.flush()
        logger.info(
            "contract_status_changed",
            extra={
                "contract_id": str(contract.id),
                "from_status": previous.value,
                "to_status": target.value,
                "actor_id": str(actor_id) if actor_id else None,
            },
        )
        return contract.to_dto()
