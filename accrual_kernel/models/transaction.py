"""
Module: accrual_kernel.models.transaction
Responsibility: The append-only ledger.  Every balance change has exactly
    one row here, and every balance value can be rebuilt from these rows.

Invariants enforced:
    - amount > 0; the sign lives in ``direction``.
    - Rows are immutable once written (db/immutability.py).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from accrual_kernel.db.base import TrackedBase, UUIDString
from accrual_kernel.db.types import MinorUnits, enum_type
from accrual_kernel.domain.dtos import TransactionRecord
from accrual_kernel.domain.values import (
    BalanceComponent,
    Direction,
    TransactionKind,
    TransactionStatus,
)


class LedgerTransaction(TrackedBase):
    __tablename__ = "ledger_transactions"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        Index("idx_transaction_owner_created", "owner_id", "created_at"),
        Index("idx_transaction_reference", "reference_id"),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    kind: Mapped[TransactionKind] = mapped_column(enum_type(TransactionKind), nullable=False)
    direction: Mapped[Direction] = mapped_column(enum_type(Direction), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MinorUnits(), nullable=False)
    component: Mapped[BalanceComponent] = mapped_column(
        enum_type(BalanceComponent), nullable=False
    )
    # Contract, withdrawal request or caller-supplied reference
    reference_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    status: Mapped[TransactionStatus] = mapped_column(
        enum_type(TransactionStatus),
        default=TransactionStatus.COMPLETED,
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction {self.kind.value} {self.direction.value} "
            f"{self.amount} {self.component.value}>"
        )

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.direction == Direction.CREDIT else -self.amount

    def to_dto(self) -> TransactionRecord:
        return TransactionRecord(
            id=self.id,
            owner_id=self.owner_id,
            kind=self.kind,
            direction=self.direction,
            amount=self.amount,
            component=self.component,
            reference_id=self.reference_id,
            status=self.status,
            description=self.description,
            created_at=self.created_at,
        )
