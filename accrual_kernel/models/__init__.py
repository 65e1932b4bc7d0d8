"""ORM models.  Importing this package registers every ledger table."""

from accrual_kernel.models.balance import Balance
from accrual_kernel.models.contract import Contract, ContractPlan
from accrual_kernel.models.distribution import ProfitDistributionRecord
from accrual_kernel.models.run_marker import DistributionRunMarker
from accrual_kernel.models.transaction import LedgerTransaction
from accrual_kernel.models.withdrawal import WithdrawalRequest

__all__ = [
    "Balance",
    "Contract",
    "ContractPlan",
    "DistributionRunMarker",
    "LedgerTransaction",
    "ProfitDistributionRecord",
    "WithdrawalRequest",
]
