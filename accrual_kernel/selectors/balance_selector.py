"""Balance and ledger reads."""

from uuid import UUID

from sqlalchemy import select

from accrual_kernel.db.types import ZERO
from accrual_kernel.domain.dtos import BalanceSnapshot, TransactionRecord
from accrual_kernel.domain.values import TransactionStatus
from accrual_kernel.models.balance import Balance
from accrual_kernel.models.transaction import LedgerTransaction
from accrual_kernel.selectors.base import BaseSelector


class BalanceSelector(BaseSelector):
    def get_balance(self, owner_id: UUID) -> BalanceSnapshot:
        """Current balance; all zeros for an owner with no balance row yet."""
        balance = self.session.execute(
            select(Balance).where(Balance.owner_id == owner_id)
        ).scalar_one_or_none()
        if balance is None:
            return BalanceSnapshot(
                owner_id=owner_id,
                total=ZERO,
                deposit=ZERO,
                profit=ZERO,
                bonus=ZERO,
                card=ZERO,
                credit_score=ZERO,
            )
        return balance.to_dto()

    def list_transactions(
        self,
        owner_id: UUID,
        limit: int = 100,
        offset: int = 0,
    ) -> list[TransactionRecord]:
        """The owner's ledger, newest first."""
        rows = self.session.execute(
            select(LedgerTransaction)
            .where(LedgerTransaction.owner_id == owner_id)
            .order_by(LedgerTransaction.created_at.desc(), LedgerTransaction.id)
            .limit(limit)
            .offset(offset)
        ).scalars()
        return [row.to_dto() for row in rows]

    def transactions_for_reference(self, reference_id: UUID) -> list[TransactionRecord]:
        rows = self.session.execute(
            select(LedgerTransaction)
            .where(LedgerTransaction.reference_id == reference_id)
            .order_by(LedgerTransaction.created_at, LedgerTransaction.id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def completed_transactions(self, owner_id: UUID) -> list[TransactionRecord]:
        rows = self.session.execute(
            select(LedgerTransaction).where(
                LedgerTransaction.owner_id == owner_id,
                LedgerTransaction.status == TransactionStatus.COMPLETED,
            )
        ).scalars()
        return [row.to_dto() for row in rows]

    def owner_ids(self) -> list[UUID]:
        """Every owner that has a balance row or a ledger entry."""
        with_balance = set(self.session.execute(select(Balance.owner_id)).scalars())
        with_ledger = set(
            self.session.execute(select(LedgerTransaction.owner_id).distinct()).scalars()
        )
        return sorted(with_balance | with_ledger, key=str)
