"""
Settings schema (``accrual_config.schema``).

Frozen dataclasses produced by the loader.  Nothing here reads files or
the environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from accrual_kernel.domain.policy import BalancePolicy
from accrual_kernel.domain.values import BalanceComponent, ContractClass


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    statement_timeout_seconds: float = 30


@dataclass(frozen=True)
class SchedulerSettings:
    poll_seconds: float = 60
    classes: tuple[ContractClass, ...] = (ContractClass.INVESTMENT, ContractClass.LIVE_TRADE)


@dataclass(frozen=True)
class DistributionSettings:
    max_workers: int = 4
    return_principal_on_completion: bool = True
    cooldowns: dict[ContractClass, timedelta] = field(
        default_factory=lambda: {
            ContractClass.INVESTMENT: timedelta(hours=24),
            ContractClass.LIVE_TRADE: timedelta(hours=1),
        }
    )
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)

    def cooldown_for(self, contract_class: ContractClass) -> timedelta:
        return self.cooldowns.get(contract_class, timedelta(0))


@dataclass(frozen=True)
class BalanceSettings:
    total_components: tuple[BalanceComponent, ...]
    mutable_components: tuple[BalanceComponent, ...]

    @property
    def policy(self) -> BalancePolicy:
        return BalancePolicy(
            total_components=self.total_components,
            mutable_components=self.mutable_components,
        )


@dataclass(frozen=True)
class WithdrawalSettings:
    priority: tuple[BalanceComponent, ...]
    refund_component: BalanceComponent = BalanceComponent.DEPOSIT


@dataclass(frozen=True)
class ReferralSettings:
    commission_rate: Decimal = Decimal("0")


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class LedgerSettings:
    """Everything the ledger reads from configuration."""

    database: DatabaseSettings
    distribution: DistributionSettings
    balances: BalanceSettings
    withdrawals: WithdrawalSettings
    referrals: ReferralSettings
    logging: LoggingSettings
    source: str = "<defaults>"
    checksum: str = ""

    @property
    def balance_policy(self) -> BalancePolicy:
        return self.balances.policy
