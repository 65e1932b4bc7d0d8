"""Balance reads, the ledger listing and admin adjustments."""

from __future__ import annotations

from fastapi import APIRouter, Query

from accrual_api.deps import AdminDep, OwnerDep, ServicesDep
from accrual_api.schemas import (
    AdjustmentOut,
    BalanceAdjustmentRequest,
    BalanceOut,
    TransactionOut,
)
from accrual_kernel.db.engine import unit_of_work
from accrual_kernel.domain.values import OPERATOR_KINDS, TransactionKind
from accrual_kernel.exceptions import ValidationError
from accrual_kernel.selectors.balance_selector import BalanceSelector

router = APIRouter(tags=["balances"])


@router.get("/balance", response_model=BalanceOut)
def get_balance(services: ServicesDep, owner_id: OwnerDep):
    with unit_of_work(services.session_factory, "get_balance") as session:
        snapshot = BalanceSelector(session).get_balance(owner_id)
    return BalanceOut.from_snapshot(snapshot)


@router.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    services: ServicesDep,
    owner_id: OwnerDep,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    with unit_of_work(services.session_factory, "list_transactions") as session:
        records = BalanceSelector(session).list_transactions(owner_id, limit, offset)
    return [TransactionOut.from_record(r) for r in records]


@router.post("/admin/balance", response_model=AdjustmentOut)
def adjust_balance(body: BalanceAdjustmentRequest, services: ServicesDep, admin_id: AdminDep):
    with unit_of_work(services.session_factory, "admin_adjustment") as session:
        result = services.writer_for(session).adjust_balance(
            owner_id=body.owner_id,
            component=body.component,
            amount=body.amount,
            direction=body.direction,
            kind=_operator_kind(body.kind),
            description=body.description,
            actor_id=admin_id,
        )
    return AdjustmentOut(
        transaction=TransactionOut.from_record(result.transaction),
        balance=BalanceOut.from_snapshot(result.balance),
    )


def _operator_kind(value: str | None) -> TransactionKind | None:
    if value is None:
        return None
    try:
        kind = TransactionKind(value.strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown transaction kind: {value!r}") from None
    if kind not in OPERATOR_KINDS:
        raise ValidationError(f"Transaction kind {kind.value!r} cannot be posted by an operator")
    return kind
