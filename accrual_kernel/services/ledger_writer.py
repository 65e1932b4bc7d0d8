"""
LedgerWriter -- the only code path that changes a balance.

Responsibility:
    Two entry points, each a closed, explicitly typed update:
      - apply_accrual(): credit one contract period (distribution record,
        profit component, contract caches, one ``profit`` transaction);
      - adjust_balance(): credit or debit one named component and append
        one transaction of a matching kind.
    Both run inside the caller's unit of work and only flush.

Invariants enforced:
    - No balance change without exactly one LedgerTransaction row, and no
      transaction row without its balance change.
    - Idempotent accrual: the distribution record's unique
      (contract_id, period_key) constraint decides.  The insert runs in a
      SAVEPOINT so a duplicate rolls back nothing but itself.
    - Only elapsed periods are credited, so periods_distributed never
      exceeds the elapsed count.
    - Row locks are taken contract first, then balance, so an accrual and
      a settlement for the same owner serialize without deadlocking.
    - A debit that would leave a component negative raises
      InsufficientFundsError before anything is written.

Failure modes:
    - ContractNotFoundError, ContractNotActiveError, DuplicatePeriodError
      from apply_accrual().
    - UnknownComponentError, ComponentNotMutableError, InvalidAmountError,
      ValidationError (kind/direction mismatch), InsufficientFundsError
      from adjust_balance().
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from accrual_kernel.db.types import ZERO, parse_money
from accrual_kernel.domain.clock import Clock
from accrual_kernel.domain.dtos import AccrualResult, AdjustmentResult
from accrual_kernel.domain.policy import BalancePolicy
from accrual_kernel.domain.schedule import PeriodSlot, elapsed_periods, period_key
from accrual_kernel.domain.values import (
    KIND_DIRECTIONS,
    BalanceComponent,
    Direction,
    TransactionKind,
    TransactionStatus,
)
from accrual_kernel.exceptions import (
    ComponentNotMutableError,
    ContractNotActiveError,
    ContractNotFoundError,
    DuplicatePeriodError,
    ValidationError,
)
from accrual_kernel.logging_config import get_logger
from accrual_kernel.models.balance import Balance
from accrual_kernel.models.contract import Contract
from accrual_kernel.models.distribution import ProfitDistributionRecord
from accrual_kernel.models.transaction import LedgerTransaction
from accrual_kernel.services.base import BaseService

logger = get_logger("services.ledger_writer")

_DEFAULT_KINDS = {
    Direction.CREDIT: TransactionKind.ADMIN_FUNDING,
    Direction.DEBIT: TransactionKind.ADMIN_DEDUCTION,
}


class LedgerWriter(BaseService):
    """
    Atomic balance mutation plus transaction append.

    Usage:
        with unit_of_work(session_factory, "admin_adjustment") as session:
            writer = LedgerWriter(session, policy, clock)
            writer.adjust_balance(owner_id, "deposit", Decimal("50.00"), Direction.CREDIT)
    """

    def __init__(
        self,
        session: Session,
        policy: BalancePolicy | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self.policy = policy or BalancePolicy()

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def lock_contract(self, contract_id: UUID) -> Contract:
        contract = self.session.execute(
            select(Contract)
            .where(Contract.id == contract_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    def _select_balance(self, owner_id: UUID) -> Balance | None:
        return self.session.execute(
            select(Balance)
            .where(Balance.owner_id == owner_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def lock_balance(self, owner_id: UUID) -> Balance:
        """
        Lock the owner's balance row, creating it on first access.

        Concurrent creators race on the unique owner constraint inside a
        savepoint; the loser re-reads the winner's row.
        """
        balance = self._select_balance(owner_id)
        if balance is not None:
            return balance

        savepoint = self.session.begin_nested()
        try:
            now = self.clock.now()
            balance = Balance(
                owner_id=owner_id,
                total=ZERO,
                deposit=ZERO,
                profit=ZERO,
                bonus=ZERO,
                card=ZERO,
                credit_score=ZERO,
                created_at=now,
                updated_at=now,
            )
            self.session.add(balance)
            self.session.flush()
            savepoint.commit()
            logger.debug("balance_created", extra={"owner_id": str(owner_id)})
            return balance
        except IntegrityError:
            savepoint.rollback()
            logger.debug("balance_create_race_retry", extra={"owner_id": str(owner_id)})
            return self.session.execute(
                select(Balance)
                .where(Balance.owner_id == owner_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one()

    # ------------------------------------------------------------------
    # Accrual
    # ------------------------------------------------------------------

    def apply_accrual(
        self,
        contract_id: UUID,
        slot: PeriodSlot,
        amount: Decimal,
        actor_id: UUID | None = None,
    ) -> AccrualResult:
        """
        Credit one period of one contract.

        Preconditions:
            - contract exists and is ACTIVE;
            - slot.key is the key of period slot.number for this contract;
            - period slot.number has fully elapsed by ``clock.now()``.
        Postconditions:
            - one ProfitDistributionRecord, the profit component (and
              total) increased by ``amount``, caches advanced, and one
              ``profit`` transaction, all pending in the caller's
              transaction;
            - on DuplicatePeriodError nothing has changed.

        A zero amount (principal x rate rounds to 0.00) still records the
        period but writes no transaction.
        """
        amount = parse_money(amount, allow_zero=True)
        contract = self.lock_contract(contract_id)
        if not contract.is_active:
            raise ContractNotActiveError(str(contract.id), contract.status.value)
        self._check_slot(contract, slot)

        now = self.clock.now()
        savepoint = self.session.begin_nested()
        try:
            record = ProfitDistributionRecord(
                contract_id=contract.id,
                owner_id=contract.owner_id,
                period_number=slot.number,
                period_key=slot.key,
                amount=amount,
                created_at=now,
                updated_at=now,
                created_by_id=actor_id,
            )
            self.session.add(record)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.info(
                "accrual_duplicate_period",
                extra={
                    "contract_id": str(contract.id),
                    "period_number": slot.number,
                    "period_key": slot.key,
                },
            )
            raise DuplicatePeriodError(str(contract.id), slot.key) from None

        balance = self.lock_balance(contract.owner_id)
        transaction_id = None
        if amount > ZERO:
            balance.credit(BalanceComponent.PROFIT, amount, self.policy.total_components)
            txn = self._append(
                owner_id=contract.owner_id,
                kind=TransactionKind.PROFIT,
                direction=Direction.CREDIT,
                amount=amount,
                component=BalanceComponent.PROFIT,
                reference_id=contract.id,
                description=f"Profit for period {slot.number} ({slot.key.isoformat()})",
                actor_id=actor_id,
                now=now,
            )
            transaction_id = txn.id
        contract.record_accrual(amount)
        contract.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "accrual_applied",
            extra={
                "contract_id": str(contract.id),
                "owner_id": str(contract.owner_id),
                "period_number": slot.number,
                "period_key": slot.key,
                "amount": amount,
            },
        )
        return AccrualResult(
            contract_id=contract.id,
            owner_id=contract.owner_id,
            slot=slot,
            amount=amount,
            transaction_id=transaction_id,
            periods_distributed=contract.periods_distributed,
            fully_distributed=contract.fully_distributed,
        )

    def _check_slot(self, contract: Contract, slot: PeriodSlot) -> None:
        if not 1 <= slot.number <= contract.duration_periods:
            raise ValidationError(
                f"Period {slot.number} outside 1..{contract.duration_periods} "
                f"for contract {contract.id}"
            )
        expected = period_key(contract.start_at, slot.number, contract.period_unit)
        if slot.key != expected:
            raise ValidationError(
                f"Period {slot.number} of contract {contract.id} has key "
                f"{expected.isoformat()}, not {slot.key.isoformat()}"
            )
        elapsed = elapsed_periods(
            contract.start_at,
            self.clock.now(),
            contract.period_unit,
            contract.duration_periods,
        )
        if slot.number > elapsed:
            raise ValidationError(
                f"Period {slot.number} of contract {contract.id} has not elapsed "
                f"({elapsed} of {contract.duration_periods} elapsed)"
            )

    # ------------------------------------------------------------------
    # Adjustment
    # ------------------------------------------------------------------

    def adjust_balance(
        self,
        owner_id: UUID,
        component: BalanceComponent | str,
        amount: Decimal | int | str,
        direction: Direction | str,
        kind: TransactionKind | str | None = None,
        reference_id: UUID | None = None,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> AdjustmentResult:
        """
        Credit or debit one component and append one transaction.

        ``kind`` defaults to admin_funding for credits and admin_deduction
        for debits.  ``reference_id`` defaults to a fresh id so every
        adjustment is individually addressable.
        """
        component = BalanceComponent.parse(component)
        if not self.policy.is_mutable(component):
            raise ComponentNotMutableError(component.value)
        amount = parse_money(amount)
        direction = _parse_direction(direction)
        kind = _parse_kind(kind) if kind is not None else _DEFAULT_KINDS[direction]
        if direction not in KIND_DIRECTIONS[kind]:
            raise ValidationError(
                f"Transaction kind {kind.value!r} cannot be a {direction.value}"
            )

        balance = self.lock_balance(owner_id)
        if direction == Direction.CREDIT:
            balance.credit(component, amount, self.policy.total_components)
        else:
            balance.debit(component, amount, self.policy.total_components)

        txn = self._append(
            owner_id=owner_id,
            kind=kind,
            direction=direction,
            amount=amount,
            component=component,
            reference_id=reference_id or uuid4(),
            description=description,
            actor_id=actor_id,
            now=self.clock.now(),
        )
        balance.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "balance_adjusted",
            extra={
                "owner_id": str(owner_id),
                "component": component.value,
                "direction": direction.value,
                "kind": kind.value,
                "amount": amount,
                "transaction_id": str(txn.id),
            },
        )
        return AdjustmentResult(transaction=txn.to_dto(), balance=balance.to_dto())

    def _append(
        self,
        *,
        owner_id: UUID,
        kind: TransactionKind,
        direction: Direction,
        amount: Decimal,
        component: BalanceComponent,
        reference_id: UUID | None,
        description: str | None,
        actor_id: UUID | None,
        now: datetime,
    ) -> LedgerTransaction:
        txn = LedgerTransaction(
            id=uuid4(),
            owner_id=owner_id,
            kind=kind,
            direction=direction,
            amount=amount,
            component=component,
            reference_id=reference_id,
            status=TransactionStatus.COMPLETED,
            description=description,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.session.add(txn)
        return txn


def _parse_direction(value: Direction | str) -> Direction:
    if isinstance(value, Direction):
        return value
    try:
        return Direction(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown direction: {value!r}") from None


def _parse_kind(value: TransactionKind | str) -> TransactionKind:
    if isinstance(value, TransactionKind):
        return value
    try:
        return TransactionKind(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown transaction kind: {value!r}") from None
