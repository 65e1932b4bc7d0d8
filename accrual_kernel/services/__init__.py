"""Kernel services.  Flush-only; the caller owns the transaction."""

from accrual_kernel.services.contract_service import ContractService
from accrual_kernel.services.cooldown_service import CooldownService
from accrual_kernel.services.ledger_writer import LedgerWriter
from accrual_kernel.services.plan_service import PlanService
from accrual_kernel.services.schedule_resolver import ScheduleResolver

__all__ = [
    "ContractService",
    "CooldownService",
    "LedgerWriter",
    "PlanService",
    "ScheduleResolver",
]
