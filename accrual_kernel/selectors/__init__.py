"""Read-only selectors."""

from accrual_kernel.selectors.balance_selector import BalanceSelector
from accrual_kernel.selectors.contract_selector import ContractSelector, WithdrawalSelector

__all__ = ["BalanceSelector", "ContractSelector", "WithdrawalSelector"]
