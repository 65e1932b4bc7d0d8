"""
accrual_services.types -- frozen results of runs and reconciliations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from accrual_kernel.domain.values import BalanceComponent, ContractClass


class OutcomeStatus(str, Enum):
    """What happened to one contract during a distribution run."""

    CREDITED = "credited"  # at least one period credited
    UP_TO_DATE = "up_to_date"  # nothing owed
    SKIPPED = "skipped"  # duplicate from a concurrent run, or no longer active
    FAILED = "failed"  # store or unexpected error; remaining periods stay owed
    NOT_STARTED = "not_started"  # run cancelled before this contract


@dataclass(frozen=True)
class ContractOutcome:
    contract_id: UUID
    owner_id: UUID
    status: OutcomeStatus
    periods_credited: int = 0
    amount: Decimal = Decimal("0.00")
    completed: bool = False
    detail: str | None = None


@dataclass(frozen=True)
class DistributionSummary:
    """
    Result of one distribution run.

    ``errors`` and ``skipped`` count contracts; ``details`` holds one line
    per skipped or failed contract.
    """

    contract_class: ContractClass
    run_id: UUID
    started_at: datetime
    finished_at: datetime
    processed_contracts: int
    periods_credited: int
    total_amount: Decimal
    completed_contracts: int
    skipped: int
    errors: int
    cancelled: bool
    outcomes: tuple[ContractOutcome, ...] = field(default_factory=tuple)
    details: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ComponentDrift:
    component: BalanceComponent
    stored: Decimal
    derived: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stored - self.derived


@dataclass(frozen=True)
class ReconciliationReport:
    """Stored balance versus the balance rebuilt from the transaction log."""

    owner_id: UUID
    stored: dict[BalanceComponent, Decimal]
    derived: dict[BalanceComponent, Decimal]
    drift: tuple[ComponentDrift, ...]
    transaction_count: int

    @property
    def balanced(self) -> bool:
        return not self.drift


@dataclass(frozen=True)
class ContractReconciliation:
    """Contract caches versus its distribution records."""

    contract_id: UUID
    cached_periods: int
    recorded_periods: int
    cached_profit: Decimal
    recorded_profit: Decimal
    ledger_profit: Decimal

    @property
    def balanced(self) -> bool:
        return (
            self.cached_periods == self.recorded_periods
            and self.cached_profit == self.recorded_profit == self.ledger_profit
        )
