"""
Frozen snapshots returned by kernel services and selectors.

Callers never receive live ORM instances; everything crossing a unit of
work boundary is one of these.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from accrual_kernel.domain.schedule import PeriodSlot
from accrual_kernel.domain.values import (
    BalanceComponent,
    ContractClass,
    ContractStatus,
    Direction,
    PeriodUnit,
    TransactionKind,
    TransactionStatus,
    WithdrawalStatus,
)


@dataclass(frozen=True)
class BalanceSnapshot:
    owner_id: UUID
    total: Decimal
    deposit: Decimal
    profit: Decimal
    bonus: Decimal
    card: Decimal
    credit_score: Decimal

    def get(self, component: BalanceComponent) -> Decimal:
        return getattr(self, component.value)

    def as_dict(self) -> dict[BalanceComponent, Decimal]:
        return {c: self.get(c) for c in BalanceComponent}


@dataclass(frozen=True)
class TransactionRecord:
    id: UUID
    owner_id: UUID
    kind: TransactionKind
    direction: Direction
    amount: Decimal
    component: BalanceComponent
    reference_id: UUID | None
    status: TransactionStatus
    description: str | None
    created_at: datetime


@dataclass(frozen=True)
class AdjustmentResult:
    transaction: TransactionRecord
    balance: BalanceSnapshot


@dataclass(frozen=True)
class AccrualResult:
    """One credited period."""

    contract_id: UUID
    owner_id: UUID
    slot: PeriodSlot
    amount: Decimal
    transaction_id: UUID | None  # None when the period amount is zero
    periods_distributed: int
    fully_distributed: bool


@dataclass(frozen=True)
class PlanInfo:
    id: UUID
    contract_class: ContractClass
    name: str
    description: str | None
    min_amount: Decimal
    max_amount: Decimal | None
    rate: Decimal
    duration_periods: int
    is_active: bool


@dataclass(frozen=True)
class ContractInfo:
    id: UUID
    owner_id: UUID
    plan_id: UUID | None
    contract_class: ContractClass
    principal: Decimal
    rate: Decimal
    period_unit: PeriodUnit
    duration_periods: int
    start_at: datetime
    end_at: datetime | None
    status: ContractStatus
    accumulated_profit: Decimal
    periods_distributed: int


@dataclass(frozen=True)
class ContractSchedule:
    """What the schedule resolver found for one contract at one instant."""

    contract_id: UUID
    owner_id: UUID
    status: ContractStatus
    elapsed: int
    duration: int
    missing: tuple[PeriodSlot, ...]
    ready_to_complete: bool
    period_amount: Decimal


@dataclass(frozen=True)
class WithdrawalInfo:
    id: UUID
    owner_id: UUID
    amount: Decimal
    method: str
    account_details: dict[str, Any] | None
    status: WithdrawalStatus
    admin_notes: str | None
    processed_by_id: UUID | None
    processed_at: datetime | None
    created_at: datetime | None


@dataclass(frozen=True)
class SettlementResult:
    request: WithdrawalInfo
    previous_status: WithdrawalStatus
    transactions: tuple[TransactionRecord, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CooldownStatus:
    contract_class: ContractClass
    window_seconds: int
    last_run_at: datetime | None
    next_allowed_at: datetime | None
    remaining_seconds: int

    @property
    def on_cooldown(self) -> bool:
        return self.remaining_seconds > 0
