from accrual_api.routers import balances, contracts, distribution, withdrawals

__all__ = ["balances", "contracts", "distribution", "withdrawals"]
