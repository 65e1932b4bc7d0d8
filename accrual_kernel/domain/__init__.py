"""
Pure domain layer: enums, period arithmetic, the accrual calculator and
frozen DTOs.  No ORM, no database, no clock reads.
"""

from accrual_kernel.domain.accrual import expected_total, period_profit
from accrual_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from accrual_kernel.domain.policy import BalancePolicy
from accrual_kernel.domain.schedule import (
    PeriodSlot,
    ScheduleState,
    elapsed_periods,
    period_key,
    resolve_schedule,
)
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

__all__ = [
    "BalanceComponent",
    "BalancePolicy",
    "Clock",
    "ContractClass",
    "ContractStatus",
    "DeterministicClock",
    "Direction",
    "PeriodSlot",
    "PeriodUnit",
    "ScheduleState",
    "SystemClock",
    "TransactionKind",
    "TransactionStatus",
    "WithdrawalStatus",
    "elapsed_periods",
    "expected_total",
    "period_key",
    "period_profit",
    "resolve_schedule",
]
