"""
accrual_services -- run-level services over the accrual kernel.

Distribution runs, withdrawal settlement, contract funding with the
referral hook, reconciliation, the polling scheduler, the DI container
and the ``accrual-ledger`` command line.  Kernel code never imports
from here.
"""

from accrual_services.container import LedgerServices
from accrual_services.contract_funding import ContractFunding
from accrual_services.distribution_orchestrator import DistributionOrchestrator
from accrual_services.reconciliation_service import ReconciliationService
from accrual_services.referral_hook import (
    ReferralCommissionHook,
    ReferralResolver,
    StaticReferralResolver,
)
from accrual_services.scheduler import DistributionScheduler
from accrual_services.types import (
    ContractOutcome,
    ContractReconciliation,
    DistributionSummary,
    OutcomeStatus,
    ReconciliationReport,
)
from accrual_services.withdrawal_settlement import WithdrawalSettlement

__all__ = [
    "ContractFunding",
    "ContractOutcome",
    "ContractReconciliation",
    "DistributionOrchestrator",
    "DistributionScheduler",
    "DistributionSummary",
    "LedgerServices",
    "OutcomeStatus",
    "ReconciliationReport",
    "ReconciliationService",
    "ReferralCommissionHook",
    "ReferralResolver",
    "StaticReferralResolver",
    "WithdrawalSettlement",
]
