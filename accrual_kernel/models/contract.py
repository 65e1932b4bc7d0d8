"""
Module: accrual_kernel.models.contract
Responsibility: Plans that contracts are opened against, and the contracts
    themselves with their denormalized accrual caches.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - period_unit matches contract_class (investment -> day, live_trade ->
      hour); checked when the contract is opened.
    - 0 <= periods_distributed <= duration_periods (CHECK constraint).
    - accumulated_profit and periods_distributed are caches of the
      distribution records and are only advanced by record_accrual().
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from accrual_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from accrual_kernel.db.types import ZERO, DecimalString, MinorUnits, enum_type
from accrual_kernel.domain.dtos import ContractInfo, PlanInfo
from accrual_kernel.domain.values import ContractClass, ContractStatus, PeriodUnit


class ContractPlan(TrackedBase):
    """An offer that owners fund contracts against."""

    __tablename__ = "contract_plans"

    __table_args__ = (
        CheckConstraint("min_amount > 0", name="ck_plan_min_positive"),
        CheckConstraint(
            "max_amount IS NULL OR max_amount >= min_amount",
            name="ck_plan_max_ge_min",
        ),
        CheckConstraint("duration_periods > 0", name="ck_plan_duration_positive"),
        Index("idx_plan_class_active", "contract_class", "is_active"),
    )

    contract_class: Mapped[ContractClass] = mapped_column(
        enum_type(ContractClass), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    min_amount: Mapped[Decimal] = mapped_column(MinorUnits(), nullable=False)
    max_amount: Mapped[Decimal | None] = mapped_column(MinorUnits(), nullable=True)
    # Per period: daily for investments, hourly for live trades
    rate: Mapped[Decimal] = mapped_column(DecimalString(), nullable=False)
    duration_periods: Mapped[int] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<ContractPlan {self.name} ({self.contract_class.value})>"

    def accepts(self, amount: Decimal) -> bool:
        if amount < self.min_amount:
            return False
        return self.max_amount is None or amount <= self.max_amount

    def to_dto(self) -> PlanInfo:
        return PlanInfo(
            id=self.id,
            contract_class=self.contract_class,
            name=self.name,
            description=self.description,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            rate=self.rate,
            duration_periods=self.duration_periods,
            is_active=self.is_active,
        )


class Contract(TrackedBase):
    """
    A funded investment or live trade.

    Mutated only by the ledger writer (accrual caches), the distribution
    run (completion) and operator status changes.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        CheckConstraint("principal > 0", name="ck_contract_principal_positive"),
        CheckConstraint("duration_periods > 0", name="ck_contract_duration_positive"),
        CheckConstraint(
            "periods_distributed >= 0 AND periods_distributed <= duration_periods",
            name="ck_contract_periods_in_range",
        ),
        CheckConstraint("accumulated_profit >= 0", name="ck_contract_profit_nonneg"),
        Index("idx_contract_class_status", "contract_class", "status"),
        Index("idx_contract_owner", "owner_id"),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    plan_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("contract_plans.id"), nullable=True
    )
    contract_class: Mapped[ContractClass] = mapped_column(
        enum_type(ContractClass), nullable=False
    )
    principal: Mapped[Decimal] = mapped_column(MinorUnits(), nullable=False)
    rate: Mapped[Decimal] = mapped_column(DecimalString(), nullable=False)
    period_unit: Mapped[PeriodUnit] = mapped_column(enum_type(PeriodUnit), nullable=False)
    duration_periods: Mapped[int] = mapped_column(nullable=False)
    start_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    status: Mapped[ContractStatus] = mapped_column(
        enum_type(ContractStatus), default=ContractStatus.ACTIVE, nullable=False
    )

    # Caches of the distribution records
    accumulated_profit: Mapped[Decimal] = mapped_column(
        MinorUnits(), default=ZERO, nullable=False
    )
    periods_distributed: Mapped[int] = mapped_column(default=0, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<Contract {self.id} {self.contract_class.value} "
            f"{self.periods_distributed}/{self.duration_periods} {self.status.value}>"
        )

    @property
    def is_active(self) -> bool:
        return self.status == ContractStatus.ACTIVE

    @property
    def fully_distributed(self) -> bool:
        return self.periods_distributed >= self.duration_periods

    def record_accrual(self, amount: Decimal) -> None:
        self.accumulated_profit = self.accumulated_profit + amount
        self.periods_distributed = self.periods_distributed + 1

    def to_dto(self) -> ContractInfo:
        return ContractInfo(
            id=self.id,
            owner_id=self.owner_id,
            plan_id=self.plan_id,
            contract_class=self.contract_class,
            principal=self.principal,
            rate=self.rate,
            period_unit=self.period_unit,
            duration_periods=self.duration_periods,
            start_at=self.start_at,
            end_at=self.end_at,
            status=self.status,
            accumulated_profit=self.accumulated_profit,
            periods_distributed=self.periods_distributed,
        )
