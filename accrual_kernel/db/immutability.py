"""
ORM-level append-only enforcement for the ledger.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                      | When Immutable            | Blocked
----------------------------|---------------------------|---------------------
ProfitDistributionRecord    | ALWAYS (from creation)    | UPDATE, DELETE
LedgerTransaction           | ALWAYS (from creation)    | UPDATE, DELETE
Contract                    | Once it has distributions | DELETE

updated_at and updated_by_id are audit metadata and may change on any row.

The listeners fire during session.flush(), before SQL reaches the store;
a violation raises ImmutabilityViolationError and the surrounding unit of
work rolls back.  Bulk UPDATE/DELETE statements bypass the ORM and are not
covered here.

===============================================================================
USAGE
===============================================================================

    register_immutability_listeners()    # build_engine() does this

    unregister_immutability_listeners()  # tests only
"""

from sqlalchemy import event, exists, inspect, select
from sqlalchemy.orm import Session

from accrual_kernel.exceptions import ImmutabilityViolationError
from accrual_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _reject_field_changes(entity_type: str, target) -> None:
    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            _block(
                entity_type,
                target,
                "UPDATE",
                f"field '{attr.key}' is append-only",
            )


def _check_distribution_update(mapper, connection, target):
    _reject_field_changes("ProfitDistributionRecord", target)


def _check_distribution_delete(mapper, connection, target):
    _block("ProfitDistributionRecord", target, "DELETE", "distribution records are never deleted")


def _check_transaction_update(mapper, connection, target):
    _reject_field_changes("LedgerTransaction", target)


def _check_transaction_delete(mapper, connection, target):
    _block("LedgerTransaction", target, "DELETE", "the transaction log is append-only")


def _check_contract_deletion_before_flush(session, flush_context, instances):
    """Contracts with distribution history cannot be deleted."""
    from accrual_kernel.models.contract import Contract
    from accrual_kernel.models.distribution import ProfitDistributionRecord

    for obj in list(session.deleted):
        if not isinstance(obj, Contract):
            continue
        with session.no_autoflush:
            has_history = session.execute(
                select(
                    exists().where(ProfitDistributionRecord.contract_id == obj.id)
                )
            ).scalar()
        if has_history:
            _block("Contract", obj, "DELETE", "contract has distribution history")


def _listener_table():
    from accrual_kernel.models.distribution import ProfitDistributionRecord
    from accrual_kernel.models.transaction import LedgerTransaction

    return [
        (Session, "before_flush", _check_contract_deletion_before_flush),
        (ProfitDistributionRecord, "before_update", _check_distribution_update),
        (ProfitDistributionRecord, "before_delete", _check_distribution_delete),
        (LedgerTransaction, "before_update", _check_transaction_update),
        (LedgerTransaction, "before_delete", _check_transaction_delete),
    ]


def register_immutability_listeners() -> None:
    """Register all append-only listeners.  Safe to call repeatedly."""
    for target, name, fn in _listener_table():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def unregister_immutability_listeners() -> None:
    """Remove all append-only listeners.  FOR TESTING ONLY."""
    for target, name, fn in _listener_table():
        if event.contains(target, name, fn):
            event.remove(target, name, fn)
