"""
Balance policy: which components feed ``total`` and which may be adjusted
directly.  Built from settings by accrual_config; the kernel only consumes
it.
"""

from __future__ import annotations

from dataclasses import dataclass

from accrual_kernel.domain.values import BalanceComponent

DEFAULT_TOTAL_COMPONENTS = (
    BalanceComponent.DEPOSIT,
    BalanceComponent.PROFIT,
    BalanceComponent.BONUS,
)

DEFAULT_MUTABLE_COMPONENTS = (
    BalanceComponent.DEPOSIT,
    BalanceComponent.PROFIT,
    BalanceComponent.BONUS,
    BalanceComponent.CARD,
    BalanceComponent.CREDIT_SCORE,
)


@dataclass(frozen=True)
class BalancePolicy:
    total_components: tuple[BalanceComponent, ...] = DEFAULT_TOTAL_COMPONENTS
    mutable_components: tuple[BalanceComponent, ...] = DEFAULT_MUTABLE_COMPONENTS

    def __post_init__(self) -> None:
        for name, components in (
            ("total_components", self.total_components),
            ("mutable_components", self.mutable_components),
        ):
            if BalanceComponent.TOTAL in components:
                raise ValueError(f"{name} may not include 'total'")
            if len(set(components)) != len(components):
                raise ValueError(f"{name} contains duplicates")
        if not self.total_components:
            raise ValueError("total_components must not be empty")

    def feeds_total(self, component: BalanceComponent) -> bool:
        return component in self.total_components

    def is_mutable(self, component: BalanceComponent) -> bool:
        return component in self.mutable_components
