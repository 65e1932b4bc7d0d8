"""
Module: accrual_kernel.models.run_marker
Responsibility: Persisted last-run timestamp per contract class.  The
    distribution cooldown is evaluated against this row, so it holds across
    restarts and between instances sharing one store.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from accrual_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from accrual_kernel.db.types import enum_type
from accrual_kernel.domain.values import ContractClass


class DistributionRunMarker(TrackedBase):
    __tablename__ = "distribution_run_markers"

    __table_args__ = (UniqueConstraint("contract_class", name="uq_run_marker_class"),)

    contract_class: Mapped[ContractClass] = mapped_column(
        enum_type(ContractClass), nullable=False
    )
    last_run_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    last_run_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    last_run_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
