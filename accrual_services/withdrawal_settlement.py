"""
WithdrawalSettlement -- the withdrawal request state machine.

Contract:
    pending  -> approved   debit across the priority components
    pending  -> declined   no balance effect
    approved -> declined   one refund credit of the full amount
    approved -> processed  terminal, no balance effect
    declined, processed    terminal

Invariants enforced:
    - Approval checks ``total >= amount`` before touching anything, then
      takes ``min(remaining, component)`` from each priority component in
      order, one ``withdrawal`` transaction per component actually
      touched.  A remainder after the walk raises InsufficientFundsError
      and the caller's unit of work discards every debit.
    - Decline after approval credits the refund component with a single
      ``admin_funding`` transaction, restoring the pre-approval total.
    - The request row is locked before the balance row.

Flush-only: callers wrap each call in ``unit_of_work()``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from accrual_kernel.db.types import ZERO, parse_money
from accrual_kernel.domain.clock import Clock, SystemClock
from accrual_kernel.domain.dtos import SettlementResult, TransactionRecord, WithdrawalInfo
from accrual_kernel.domain.policy import BalancePolicy
from accrual_kernel.domain.values import (
    WITHDRAWAL_TRANSITIONS,
    BalanceComponent,
    Direction,
    TransactionKind,
    WithdrawalStatus,
)
from accrual_kernel.exceptions import (
    InsufficientFundsError,
    InvalidStatusTransitionError,
    ValidationError,
    WithdrawalNotFoundError,
)
from accrual_kernel.logging_config import get_logger
from accrual_kernel.models.withdrawal import WithdrawalRequest
from accrual_kernel.services.ledger_writer import LedgerWriter

logger = get_logger("services.settlement")

DEFAULT_PRIORITY = (
    BalanceComponent.DEPOSIT,
    BalanceComponent.PROFIT,
    BalanceComponent.BONUS,
)


def parse_withdrawal_status(value: WithdrawalStatus | str) -> WithdrawalStatus:
    if isinstance(value, WithdrawalStatus):
        return value
    try:
        return WithdrawalStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown withdrawal status: {value!r}") from None


class WithdrawalSettlement:
    def __init__(
        self,
        session: Session,
        policy: BalancePolicy | None = None,
        clock: Clock | None = None,
        priority: Sequence[BalanceComponent] = DEFAULT_PRIORITY,
        refund_component: BalanceComponent = BalanceComponent.DEPOSIT,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.writer = LedgerWriter(session, policy, self.clock)
        self.priority = tuple(priority)
        self.refund_component = refund_component

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    def request_withdrawal(
        self,
        owner_id: UUID,
        amount: Decimal | int | str,
        method: str,
        account_details: dict[str, Any] | None = None,
    ) -> WithdrawalInfo:
        """Create a pending request.  Funds are checked on approval, not here."""
        amount = parse_money(amount)
        if not method or not str(method).strip():
            raise ValidationError("Withdrawal method must not be empty")
        now = self.clock.now()
        request = WithdrawalRequest(
            id=uuid4(),
            owner_id=owner_id,
            amount=amount,
            method=str(method).strip(),
            account_details=account_details,
            status=WithdrawalStatus.PENDING,
            created_at=now,
            updated_at=now,
            created_by_id=owner_id,
        )
        self.session.add(request)
        self.session.flush()
        logger.info(
            "withdrawal_requested",
            extra={
                "request_id": str(request.id),
                "owner_id": str(owner_id),
                "amount": amount,
                "method": request.method,
            },
        )
        return request.to_dto()

    def _lock_request(self, request_id: UUID) -> WithdrawalRequest:
        request = self.session.execute(
            select(WithdrawalRequest)
            .where(WithdrawalRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if request is None:
            raise WithdrawalNotFoundError(str(request_id))
        return request

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def transition(
        self,
        request_id: UUID,
        status: WithdrawalStatus | str,
        actor_id: UUID | None = None,
        notes: str | None = None,
    ) -> SettlementResult:
        """Move a request to ``status``, applying its balance effect."""
        target = parse_withdrawal_status(status)
        request = self._lock_request(request_id)
        current = request.status
        if target not in WITHDRAWAL_TRANSITIONS[current]:
            raise InvalidStatusTransitionError(
                "WithdrawalRequest", str(request.id), current.value, target.value
            )

        transactions: list[TransactionRecord] = []
        if current == WithdrawalStatus.PENDING and target == WithdrawalStatus.APPROVED:
            transactions = self._debit(request, actor_id)
        elif current == WithdrawalStatus.APPROVED and target == WithdrawalStatus.DECLINED:
            transactions = [self._refund(request, actor_id)]

        request.status = target
        if notes is not None:
            request.admin_notes = notes
        request.processed_by_id = actor_id
        request.processed_at = self.clock.now()
        request.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "withdrawal_transitioned",
            extra={
                "request_id": str(request.id),
                "owner_id": str(request.owner_id),
                "from_status": current.value,
                "to_status": target.value,
                "amount": request.amount,
                "transactions": len(transactions),
            },
        )
        return SettlementResult(
            request=request.to_dto(),
            previous_status=current,
            transactions=tuple(transactions),
        )

    def approve(self, request_id: UUID, actor_id: UUID | None = None, notes: str | None = None):
        return self.transition(request_id, WithdrawalStatus.APPROVED, actor_id, notes)

    def decline(self, request_id: UUID, actor_id: UUID | None = None, notes: str | None = None):
        return self.transition(request_id, WithdrawalStatus.DECLINED, actor_id, notes)

    def mark_processed(
        self, request_id: UUID, actor_id: UUID | None = None, notes: str | None = None
    ):
        return self.transition(request_id, WithdrawalStatus.PROCESSED, actor_id, notes)

    # -------------------------------------------------------------------------
    # Balance effects
    # -------------------------------------------------------------------------

    def _debit(
        self,
        request: WithdrawalRequest,
        actor_id: UUID | None,
    ) -> list[TransactionRecord]:
        owner_id = request.owner_id
        amount = request.amount
        balance = self.writer.lock_balance(owner_id)
        total = balance.get(BalanceComponent.TOTAL)
        if total < amount:
            raise InsufficientFundsError(
                owner_id=str(owner_id),
                component=BalanceComponent.TOTAL.value,
                requested=amount,
                available=total,
            )

        remaining = amount
        transactions: list[TransactionRecord] = []
        for component in self.priority:
            if remaining == ZERO:
                break
            take = min(remaining, balance.get(component))
            if take <= ZERO:
                continue
            result = self.writer.adjust_balance(
                owner_id=owner_id,
                component=component,
                amount=take,
                direction=Direction.DEBIT,
                kind=TransactionKind.WITHDRAWAL,
                reference_id=request.id,
                description=f"Withdrawal via {request.method} from {component.value}",
                actor_id=actor_id,
            )
            transactions.append(result.transaction)
            remaining -= take

        if remaining > ZERO:
            # total covered the amount but the priority components did not
            raise InsufficientFundsError(
                owner_id=str(owner_id),
                component="+".join(c.value for c in self.priority),
                requested=amount,
                available=amount - remaining,
            )
        return transactions

    def _refund(self, request: WithdrawalRequest, actor_id: UUID | None) -> TransactionRecord:
        result = self.writer.adjust_balance(
            owner_id=request.owner_id,
            component=self.refund_component,
            amount=request.amount,
            direction=Direction.CREDIT,
            kind=TransactionKind.ADMIN_FUNDING,
            reference_id=request.id,
            description="Refund of declined withdrawal",
            actor_id=actor_id,
        )
        return result.transaction
