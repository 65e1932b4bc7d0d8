"""
Module: accrual_kernel.models.distribution
Responsibility: One row per credited contract period.

Invariants enforced:
    - UNIQUE (contract_id, period_key): the idempotency anchor.  A second
      insert for the same period fails at the store, whoever attempts it.
    - UNIQUE (contract_id, period_number).
    - Rows are immutable once written (db/immutability.py).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from accrual_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from accrual_kernel.db.types import MinorUnits


class ProfitDistributionRecord(TrackedBase):
    __tablename__ = "profit_distribution_records"

    __table_args__ = (
        UniqueConstraint("contract_id", "period_key", name="uq_distribution_period_key"),
        UniqueConstraint(
            "contract_id", "period_number", name="uq_distribution_period_number"
        ),
        CheckConstraint("period_number >= 1", name="ck_distribution_period_number"),
        CheckConstraint("amount >= 0", name="ck_distribution_amount_nonneg"),
        Index("idx_distribution_owner", "owner_id"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("contracts.id"), nullable=False
    )
    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    period_number: Mapped[int] = mapped_column(nullable=False)
    # Period start truncated to the period unit, UTC
    period_key: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MinorUnits(), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ProfitDistributionRecord {self.contract_id} "
            f"#{self.period_number} {self.period_key.isoformat()}>"
        )
