"""
Module: accrual_kernel.models.withdrawal
Responsibility: Owner withdrawal requests.  Status changes only through
    the settlement state machine.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from accrual_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from accrual_kernel.db.types import MinorUnits, enum_type
from accrual_kernel.domain.dtos import WithdrawalInfo
from accrual_kernel.domain.values import WithdrawalStatus


class WithdrawalRequest(TrackedBase):
    __tablename__ = "withdrawal_requests"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_withdrawal_amount_positive"),
        Index("idx_withdrawal_owner", "owner_id"),
        Index("idx_withdrawal_status", "status"),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MinorUnits(), nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    account_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    status: Mapped[WithdrawalStatus] = mapped_column(
        enum_type(WithdrawalStatus),
        default=WithdrawalStatus.PENDING,
        nullable=False,
    )
    admin_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    processed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    def __repr__(self) -> str:
        return f"<WithdrawalRequest {self.id} {self.amount} {self.status.value}>"

    def to_dto(self) -> WithdrawalInfo:
        return WithdrawalInfo(
            id=self.id,
            owner_id=self.owner_id,
            amount=self.amount,
            method=self.method,
            account_details=dict(self.account_details) if self.account_details else None,
            status=self.status,
            admin_notes=self.admin_notes,
            processed_by_id=self.processed_by_id,
            processed_at=self.processed_at,
            created_at=self.created_at,
        )
