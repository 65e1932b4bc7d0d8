"""
Referral commission hook.

Runs after a contract's funding unit of work has committed.  The referrer
is found through an injected ``ReferralResolver``; relationship
bookkeeping lives elsewhere.  The commission is written in its own unit
of work, so a failure here never touches the funded contract.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Mapping, Protocol
from uuid import UUID

from accrual_kernel.db.engine import SessionFactory, unit_of_work
from accrual_kernel.db.types import ZERO, round_money
from accrual_kernel.domain.clock import Clock, SystemClock
from accrual_kernel.domain.dtos import AdjustmentResult, ContractInfo
from accrual_kernel.domain.policy import BalancePolicy
from accrual_kernel.domain.values import BalanceComponent, Direction, TransactionKind
from accrual_kernel.logging_config import get_logger
from accrual_kernel.services.ledger_writer import LedgerWriter

logger = get_logger("services.referral")


class ReferralResolver(Protocol):
    def referrer_of(self, owner_id: UUID) -> UUID | None:
        """The owner who referred ``owner_id``, or None."""
        ...


class StaticReferralResolver:
    """In-memory resolver backed by a ``{referred: referrer}`` mapping."""

    def __init__(self, referrers: Mapping[UUID, UUID] | None = None):
        self._referrers = dict(referrers or {})

    def add(self, referred_id: UUID, referrer_id: UUID) -> None:
        self._referrers[referred_id] = referrer_id

    def referrer_of(self, owner_id: UUID) -> UUID | None:
        return self._referrers.get(owner_id)


class ReferralCommissionHook:
    def __init__(
        self,
        session_factory: SessionFactory,
        resolver: ReferralResolver,
        commission_rate: Decimal,
        policy: BalancePolicy | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._resolver = resolver
        self._rate = commission_rate
        self._policy = policy
        self._clock = clock or SystemClock()

    def commission_for(self, principal: Decimal) -> Decimal:
        return round_money(principal * self._rate)

    def on_contract_funded(self, contract: ContractInfo) -> AdjustmentResult | None:
        """Credit the referrer's bonus.  Returns None when nothing is owed."""
        referrer_id = self._resolver.referrer_of(contract.owner_id)
        if referrer_id is None or referrer_id == contract.owner_id:
            return None
        amount = self.commission_for(contract.principal)
        if amount <= ZERO:
            return None

        with unit_of_work(self._session_factory, "referral_commission") as session:
            result = LedgerWriter(session, self._policy, self._clock).adjust_balance(
                owner_id=referrer_id,
                component=BalanceComponent.BONUS,
                amount=amount,
                direction=Direction.CREDIT,
                kind=TransactionKind.REFERRAL_COMMISSION,
                reference_id=contract.id,
                description=f"Referral commission on {contract.contract_class.value} contract",
            )

        logger.info(
            "referral_commission_credited",
            extra={
                "referrer_id": str(referrer_id),
                "referred_id": str(contract.owner_id),
                "contract_id": str(contract.id),
                "amount": amount,
            },
        )
        return result
