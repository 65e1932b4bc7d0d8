"""
ContractFunding -- opens a contract and then notifies the referral hook.

The funding unit of work (contract row plus the ``investment`` debit)
commits first.  The hook runs afterwards; any exception it raises is
logged and dropped, so a commission problem can neither roll back nor
block funding.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from accrual_kernel.db.engine import SessionFactory, unit_of_work
from accrual_kernel.domain.clock import Clock, SystemClock
from accrual_kernel.domain.dtos import ContractInfo
from accrual_kernel.domain.policy import BalancePolicy
from accrual_kernel.logging_config import LogContext, get_logger
from accrual_kernel.services.contract_service import ContractService

from accrual_services.referral_hook import ReferralCommissionHook

logger = get_logger("services.funding")


class ContractFunding:
    def __init__(
        self,
        session_factory: SessionFactory,
        policy: BalancePolicy | None = None,
        clock: Clock | None = None,
        referral_hook: ReferralCommissionHook | None = None,
    ):
        self._session_factory = session_factory
        self._policy = policy
        self._clock = clock or SystemClock()
        self._referral_hook = referral_hook

    def open_contract(
        self,
        owner_id: UUID,
        plan_id: UUID,
        amount: Decimal | int | str,
        actor_id: UUID | None = None,
    ) -> ContractInfo:
        """Fund a contract on ``plan_id`` from the owner's deposit.

        Raises:
            PlanNotFoundError, PlanLimitError, InsufficientFundsError,
            InvalidAmountError: nothing was written.
        """
        with LogContext.bind(owner_id=owner_id):
            with unit_of_work(self._session_factory, "open_contract") as session:
                contract = ContractService(session, self._policy, self._clock).open_contract(
                    owner_id, plan_id, amount, actor_id
                )

            if self._referral_hook is not None:
                try:
                    self._referral_hook.on_contract_funded(contract)
                except Exception:
                    logger.exception(
                        "referral_hook_failed",
                        extra={"contract_id": str(contract.id)},
                    )
            return contract
