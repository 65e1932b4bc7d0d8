"""
Request and response bodies for the HTTP API.

Field names are camelCase on the wire.  Money is serialized as a decimal
string with two places ("12.50"), never as a float.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from accrual_kernel.domain.dtos import (
    BalanceSnapshot,
    ContractInfo,
    CooldownStatus,
    PlanInfo,
    TransactionRecord,
    WithdrawalInfo,
)
from accrual_services.types import DistributionSummary


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class DistributeRequest(CamelModel):
    contract_class: str


class WithdrawalStatusRequest(CamelModel):
    status: str
    notes: Optional[str] = None


class WithdrawalCreateRequest(CamelModel):
    amount: Decimal
    method: str
    account_details: Optional[dict[str, Any]] = None


class BalanceAdjustmentRequest(CamelModel):
    owner_id: UUID
    component: str
    amount: Decimal
    direction: str
    kind: Optional[str] = None
    description: Optional[str] = None


class PlanCreateRequest(CamelModel):
    contract_class: str
    name: str
    min_amount: Decimal
    max_amount: Optional[Decimal] = None
    rate: Decimal
    duration_periods: int
    description: Optional[str] = None


class ContractOpenRequest(CamelModel):
    plan_id: UUID
    amount: Decimal


class ContractStatusRequest(CamelModel):
    action: str = Field(description="suspend, resume, cancel or complete")


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class BalanceOut(CamelModel):
    total: Decimal
    deposit: Decimal
    profit: Decimal
    bonus: Decimal
    card: Decimal
    credit_score: Decimal

    @classmethod
    def from_snapshot(cls, snapshot: BalanceSnapshot) -> BalanceOut:
        return cls(
            total=snapshot.total,
            deposit=snapshot.deposit,
            profit=snapshot.profit,
            bonus=snapshot.bonus,
            card=snapshot.card,
            credit_score=snapshot.credit_score,
        )


class TransactionOut(CamelModel):
    id: UUID
    owner_id: UUID
    kind: str
    direction: str
    amount: Decimal
    component: str
    reference_id: Optional[UUID]
    status: str
    description: Optional[str]
    created_at: datetime

    @classmethod
    def from_record(cls, record: TransactionRecord) -> TransactionOut:
        return cls(
            id=record.id,
            owner_id=record.owner_id,
            kind=record.kind.value,
            direction=record.direction.value,
            amount=record.amount,
            component=record.component.value,
            reference_id=record.reference_id,
            status=record.status.value,
            description=record.description,
            created_at=record.created_at,
        )


class AdjustmentOut(CamelModel):
    transaction: TransactionOut
    balance: BalanceOut


class DistributionOut(CamelModel):
    run_id: UUID
    contract_class: str
    processed_contracts: int
    periods_credited: int
    total_amount: Decimal
    completed_contracts: int
    errors: int
    skipped: int
    cancelled: bool
    details: list[str]

    @classmethod
    def from_summary(cls, summary: DistributionSummary) -> DistributionOut:
        return cls(
            run_id=summary.run_id,
            contract_class=summary.contract_class.value,
            processed_contracts=summary.processed_contracts,
            periods_credited=summary.periods_credited,
            total_amount=summary.total_amount,
            completed_contracts=summary.completed_contracts,
            errors=summary.errors,
            skipped=summary.skipped,
            cancelled=summary.cancelled,
            details=list(summary.details),
        )


class CooldownOut(CamelModel):
    contract_class: str
    on_cooldown: bool
    remaining_seconds: int
    window_seconds: int
    last_run_at: Optional[datetime]
    next_allowed_at: Optional[datetime]

    @classmethod
    def from_status(cls, status: CooldownStatus) -> CooldownOut:
        return cls(
            contract_class=status.contract_class.value,
            on_cooldown=status.on_cooldown,
            remaining_seconds=status.remaining_seconds,
            window_seconds=status.window_seconds,
            last_run_at=status.last_run_at,
            next_allowed_at=status.next_allowed_at,
        )


class WithdrawalOut(CamelModel):
    id: UUID
    owner_id: UUID
    amount: Decimal
    method: str
    account_details: Optional[dict[str, Any]]
    status: str
    admin_notes: Optional[str]
    processed_by_id: Optional[UUID]
    processed_at: Optional[datetime]
    created_at: Optional[datetime]

    @classmethod
    def from_info(cls, info: WithdrawalInfo) -> WithdrawalOut:
        return cls(
            id=info.id,
            owner_id=info.owner_id,
            amount=info.amount,
            method=info.method,
            account_details=info.account_details,
            status=info.status.value,
            admin_notes=info.admin_notes,
            processed_by_id=info.processed_by_id,
            processed_at=info.processed_at,
            created_at=info.created_at,
        )


class PlanOut(CamelModel):
    id: UUID
    contract_class: str
    name: str
    description: Optional[str]
    min_amount: Decimal
    max_amount: Optional[Decimal]
    rate: Decimal
    duration_periods: int
    is_active: bool

    @classmethod
    def from_info(cls, info: PlanInfo) -> PlanOut:
        return cls(
            id=info.id,
            contract_class=info.contract_class.value,
            name=info.name,
            description=info.description,
            min_amount=info.min_amount,
            max_amount=info.max_amount,
            rate=info.rate,
            duration_periods=info.duration_periods,
            is_active=info.is_active,
        )


class ContractOut(CamelModel):
    id: UUID
    owner_id: UUID
    plan_id: Optional[UUID]
    contract_class: str
    principal: Decimal
    rate: Decimal
    period_unit: str
    duration_periods: int
    start_at: datetime
    end_at: Optional[datetime]
    status: str
    accumulated_profit: Decimal
    periods_distributed: int

    @classmethod
    def from_info(cls, info: ContractInfo) -> ContractOut:
        return cls(
            id=info.id,
            owner_id=info.owner_id,
            plan_id=info.plan_id,
            contract_class=info.contract_class.value,
            principal=info.principal,
            rate=info.rate,
            period_unit=info.period_unit.value,
            duration_periods=info.duration_periods,
            start_at=info.start_at,
            end_at=info.end_at,
            status=info.status.value,
            accumulated_profit=info.accumulated_profit,
            periods_distributed=info.periods_distributed,
        )
