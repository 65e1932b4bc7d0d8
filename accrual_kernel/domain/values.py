"""
accrual_kernel.domain.values -- Closed vocabularies of the ledger.

Every status, kind and component used anywhere in the ledger is one of
these enums; free-form strings are parsed at the boundary with the
``parse`` helpers, which raise typed validation errors.
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum

from accrual_kernel.exceptions import InvalidContractClassError, UnknownComponentError


class PeriodUnit(str, Enum):
    DAY = "day"
    HOUR = "hour"

    @property
    def length(self) -> timedelta:
        return timedelta(days=1) if self is PeriodUnit.DAY else timedelta(hours=1)


class ContractClass(str, Enum):
    """Contract variant.  Each class accrues over exactly one period unit."""

    INVESTMENT = "investment"  # daily accrual
    LIVE_TRADE = "live_trade"  # hourly accrual

    @property
    def period_unit(self) -> PeriodUnit:
        return PeriodUnit.DAY if self is ContractClass.INVESTMENT else PeriodUnit.HOUR

    @classmethod
    def parse(cls, value: str | ContractClass) -> ContractClass:
        if isinstance(value, ContractClass):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        # Accept the camel-case spelling used by HTTP callers.
        if normalized == "livetrade":
            normalized = "live_trade"
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidContractClassError(str(value)) from None


class ContractStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    SUSPENDED = "suspended"


class BalanceComponent(str, Enum):
    """Named components of an owner's balance."""

    TOTAL = "total"  # derived, never adjusted directly
    DEPOSIT = "deposit"
    PROFIT = "profit"
    BONUS = "bonus"
    CARD = "card"
    CREDIT_SCORE = "credit_score"

    @classmethod
    def parse(cls, value: str | BalanceComponent) -> BalanceComponent:
        if isinstance(value, BalanceComponent):
            return value
        normalized = str(value).strip()
        if normalized == "creditScore":
            normalized = "credit_score"
        try:
            return cls(normalized)
        except ValueError:
            raise UnknownComponentError(str(value)) from None


class Direction(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    INVESTMENT = "investment"
    PROFIT = "profit"
    BONUS = "bonus"
    REFERRAL_COMMISSION = "referral_commission"
    ADMIN_FUNDING = "admin_funding"
    CREDIT = "credit"
    DEBIT = "debit"
    ADMIN_DEDUCTION = "admin_deduction"
    PRINCIPAL_RETURN = "principal_return"


# The single direction each transaction kind may carry.
KIND_DIRECTIONS: dict[TransactionKind, frozenset[Direction]] = {
    TransactionKind.DEPOSIT: frozenset({Direction.CREDIT}),
    TransactionKind.WITHDRAWAL: frozenset({Direction.DEBIT}),
    TransactionKind.INVESTMENT: frozenset({Direction.DEBIT}),
    TransactionKind.PROFIT: frozenset({Direction.CREDIT}),
    TransactionKind.BONUS: frozenset({Direction.CREDIT}),
    TransactionKind.REFERRAL_COMMISSION: frozenset({Direction.CREDIT}),
    TransactionKind.ADMIN_FUNDING: frozenset({Direction.CREDIT}),
    TransactionKind.CREDIT: frozenset({Direction.CREDIT}),
    TransactionKind.DEBIT: frozenset({Direction.DEBIT}),
    TransactionKind.ADMIN_DEDUCTION: frozenset({Direction.DEBIT}),
    TransactionKind.PRINCIPAL_RETURN: frozenset({Direction.CREDIT}),
}

# Kinds an operator may post by hand.  Profit, investment, withdrawal,
# commission and principal return rows belong to the services that write them.
OPERATOR_KINDS: frozenset[TransactionKind] = frozenset(
    {
        TransactionKind.ADMIN_FUNDING,
        TransactionKind.ADMIN_DEDUCTION,
        TransactionKind.CREDIT,
        TransactionKind.DEBIT,
        TransactionKind.DEPOSIT,
    }
)


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    PROCESSED = "processed"


# Allowed withdrawal transitions; declined and processed are terminal.
WITHDRAWAL_TRANSITIONS: dict[WithdrawalStatus, frozenset[WithdrawalStatus]] = {
    WithdrawalStatus.PENDING: frozenset({WithdrawalStatus.APPROVED, WithdrawalStatus.DECLINED}),
    WithdrawalStatus.APPROVED: frozenset({WithdrawalStatus.DECLINED, WithdrawalStatus.PROCESSED}),
    WithdrawalStatus.DECLINED: frozenset(),
    WithdrawalStatus.PROCESSED: frozenset(),
}

CONTRACT_TRANSITIONS: dict[ContractStatus, frozenset[ContractStatus]] = {
    ContractStatus.ACTIVE: frozenset(
        {ContractStatus.SUSPENDED, ContractStatus.CANCELLED, ContractStatus.COMPLETED}
    ),
    ContractStatus.SUSPENDED: frozenset({ContractStatus.ACTIVE, ContractStatus.CANCELLED}),
    ContractStatus.COMPLETED: frozenset(),
    ContractStatus.CANCELLED: frozenset(),
}
