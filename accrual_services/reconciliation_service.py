"""
ReconciliationService -- rebuilds balances and contract caches from the log.

Contract:
    - ``reconstruct_balance(owner)`` sums the owner's completed
      transactions per component (credits positive, debits negative) and
      derives ``total`` from the configured total components.
    - ``verify_owner(owner)`` compares that against the stored Balance.
    - ``verify_contract(contract_id)`` compares ``periods_distributed`` and
      ``accumulated_profit`` with the distribution records and with the
      ``profit`` transactions that reference the contract.
    - ``verify_all()`` runs both checks over every owner and contract.

Read-only.  Drift is reported and logged at WARNING; nothing is repaired.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from accrual_kernel.db.engine import SessionFactory, unit_of_work
from accrual_kernel.db.types import ZERO
from accrual_kernel.domain.policy import BalancePolicy
from accrual_kernel.domain.values import BalanceComponent, Direction, TransactionKind
from accrual_kernel.logging_config import get_logger
from accrual_kernel.selectors.balance_selector import BalanceSelector
from accrual_kernel.selectors.contract_selector import ContractSelector

from accrual_services.types import (
    ComponentDrift,
    ContractReconciliation,
    ReconciliationReport,
)

logger = get_logger("services.reconciliation")


class ReconciliationService:
    def __init__(
        self,
        session_factory: SessionFactory,
        policy: BalancePolicy | None = None,
    ):
        self._session_factory = session_factory
        self._policy = policy or BalancePolicy()

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------

    def _derive(self, session: Session, owner_id: UUID) -> tuple[dict[BalanceComponent, Decimal], int]:
        derived = {component: ZERO for component in BalanceComponent}
        transactions = BalanceSelector(session).completed_transactions(owner_id)
        for txn in transactions:
            sign = 1 if txn.direction == Direction.CREDIT else -1
            derived[txn.component] += sign * txn.amount
        derived[BalanceComponent.TOTAL] = sum(
            (derived[c] for c in self._policy.total_components), ZERO
        )
        return derived, len(transactions)

    def reconstruct_balance(self, owner_id: UUID) -> dict[BalanceComponent, Decimal]:
        with unit_of_work(self._session_factory, "reconstruct_balance") as session:
            derived, _ = self._derive(session, owner_id)
        return derived

    def _verify_owner(self, session: Session, owner_id: UUID) -> ReconciliationReport:
        stored = BalanceSelector(session).get_balance(owner_id).as_dict()
        derived, count = self._derive(session, owner_id)
        drift = tuple(
            ComponentDrift(component=c, stored=stored[c], derived=derived[c])
            for c in BalanceComponent
            if stored[c] != derived[c]
        )
        report = ReconciliationReport(
            owner_id=owner_id,
            stored=stored,
            derived=derived,
            drift=drift,
            transaction_count=count,
        )
        if drift:
            logger.warning(
                "balance_drift_detected",
                extra={
                    "owner_id": str(owner_id),
                    "components": [d.component.value for d in drift],
                    "differences": {d.component.value: d.difference for d in drift},
                },
            )
        return report

    def verify_owner(self, owner_id: UUID) -> ReconciliationReport:
        with unit_of_work(self._session_factory, "verify_owner") as session:
            return self._verify_owner(session, owner_id)

    # -------------------------------------------------------------------------
    # Contracts
    # -------------------------------------------------------------------------

    def _verify_contract(self, session: Session, contract_id: UUID) -> ContractReconciliation:
        selector = ContractSelector(session)
        contract = selector.get_contract(contract_id)
        recorded_periods, recorded_profit = selector.distribution_totals(contract_id)
        ledger_profit = sum(
            (
                txn.amount
                for txn in BalanceSelector(session).transactions_for_reference(contract_id)
                if txn.kind == TransactionKind.PROFIT
            ),
            ZERO,
        )
        result = ContractReconciliation(
            contract_id=contract_id,
            cached_periods=contract.periods_distributed,
            recorded_periods=recorded_periods,
            cached_profit=contract.accumulated_profit,
            recorded_profit=Decimal(recorded_profit),
            ledger_profit=ledger_profit,
        )
        if not result.balanced:
            logger.warning(
                "contract_drift_detected",
                extra={
                    "contract_id": str(contract_id),
                    "cached_periods": result.cached_periods,
                    "recorded_periods": result.recorded_periods,
                    "cached_profit": result.cached_profit,
                    "recorded_profit": result.recorded_profit,
                    "ledger_profit": result.ledger_profit,
                },
            )
        return result

    def verify_contract(self, contract_id: UUID) -> ContractReconciliation:
        """Raises ContractNotFoundError for an unknown id."""
        with unit_of_work(self._session_factory, "verify_contract") as session:
            return self._verify_contract(session, contract_id)

    def verify_all(self) -> tuple[list[ReconciliationReport], list[ContractReconciliation]]:
        with unit_of_work(self._session_factory, "verify_all") as session:
            owners = [
                self._verify_owner(session, owner_id)
                for owner_id in BalanceSelector(session).owner_ids()
            ]
            contracts = [
                self._verify_contract(session, contract_id)
                for contract_id in ContractSelector(session).all_contract_ids()
            ]
        logger.info(
            "reconciliation_completed",
            extra={
                "owners": len(owners),
                "owners_with_drift": sum(1 for r in owners if not r.balanced),
                "contracts": len(contracts),
                "contracts_with_drift": sum(1 for r in contracts if not r.balanced),
            },
        )
        return owners, contracts
