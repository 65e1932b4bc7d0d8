"""
Module: accrual_kernel.models.balance
Responsibility: Per-owner balance row with one column per component.

Invariants enforced:
    - No component is ever negative (CHECK constraints, and debit() refuses
      before the store would).
    - ``total`` is derived: after every credit/debit it is recomputed as the
      sum of the configured total components.
    - Mutation happens only through credit() and debit(); there is no
      generic field patching.
"""

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from accrual_kernel.db.base import TrackedBase, UUIDString
from accrual_kernel.db.types import ZERO, MinorUnits
from accrual_kernel.domain.dtos import BalanceSnapshot
from accrual_kernel.domain.values import BalanceComponent
from accrual_kernel.exceptions import InsufficientFundsError

_COLUMNS: dict[BalanceComponent, str] = {c: c.value for c in BalanceComponent}


class Balance(TrackedBase):
    __tablename__ = "balances"

    __table_args__ = (
        UniqueConstraint("owner_id", name="uq_balance_owner"),
        *(
            CheckConstraint(f"{column} >= 0", name=f"ck_balance_{column}_nonneg")
            for column in _COLUMNS.values()
        ),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    total: Mapped[Decimal] = mapped_column(MinorUnits(), default=ZERO, nullable=False)
    deposit: Mapped[Decimal] = mapped_column(MinorUnits(), default=ZERO, nullable=False)
    profit: Mapped[Decimal] = mapped_column(MinorUnits(), default=ZERO, nullable=False)
    bonus: Mapped[Decimal] = mapped_column(MinorUnits(), default=ZERO, nullable=False)
    card: Mapped[Decimal] = mapped_column(MinorUnits(), default=ZERO, nullable=False)
    credit_score: Mapped[Decimal] = mapped_column(
        MinorUnits(), default=ZERO, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Balance {self.owner_id} total={self.total}>"

    def get(self, component: BalanceComponent) -> Decimal:
        value = getattr(self, _COLUMNS[component])
        return ZERO if value is None else value

    def as_dict(self) -> dict[BalanceComponent, Decimal]:
        return {c: self.get(c) for c in BalanceComponent}

    def credit(
        self,
        component: BalanceComponent,
        amount: Decimal,
        total_components: Iterable[BalanceComponent],
    ) -> None:
        setattr(self, _COLUMNS[component], self.get(component) + amount)
        self._recompute_total(total_components)

    def debit(
        self,
        component: BalanceComponent,
        amount: Decimal,
        total_components: Iterable[BalanceComponent],
    ) -> None:
        available = self.get(component)
        if amount > available:
            raise InsufficientFundsError(
                owner_id=str(self.owner_id),
                component=component.value,
                requested=amount,
                available=available,
            )
        setattr(self, _COLUMNS[component], available - amount)
        self._recompute_total(total_components)

    def _recompute_total(self, total_components: Iterable[BalanceComponent]) -> None:
        self.total = sum((self.get(c) for c in total_components), ZERO)

    def to_dto(self) -> BalanceSnapshot:
        return BalanceSnapshot(
            owner_id=self.owner_id,
            total=self.get(BalanceComponent.TOTAL),
            deposit=self.get(BalanceComponent.DEPOSIT),
            profit=self.get(BalanceComponent.PROFIT),
            bonus=self.get(BalanceComponent.BONUS),
            card=self.get(BalanceComponent.CARD),
            credit_score=self.get(BalanceComponent.CREDIT_SCORE),
        )
