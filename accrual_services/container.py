"""
LedgerServices -- DI container for the accrual ledger.

Contract:
    ``from_settings()`` builds (or accepts) a session factory and hands
    the same clock, balance policy and configured limits to every service
    it creates.  Single place where configuration meets the services.

Non-goals:
    - Does NOT start the scheduler; the caller decides.
    - Does NOT hold a session.  Session-scoped services (settlement,
      plans, contract lifecycle, the raw writer) are created per unit of
      work through the ``*_for(session)`` helpers.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from accrual_config.schema import LedgerSettings
from accrual_kernel.db.engine import (
    SessionFactory,
    build_engine,
    build_session_factory,
    create_tables,
)
from accrual_kernel.domain.clock import Clock, SystemClock
from accrual_kernel.domain.policy import BalancePolicy
from accrual_kernel.logging_config import configure_logging, get_logger
from accrual_kernel.services.contract_service import ContractService
from accrual_kernel.services.cooldown_service import CooldownService
from accrual_kernel.services.ledger_writer import LedgerWriter
from accrual_kernel.services.plan_service import PlanService

from accrual_services.contract_funding import ContractFunding
from accrual_services.distribution_orchestrator import DistributionOrchestrator
from accrual_services.reconciliation_service import ReconciliationService
from accrual_services.referral_hook import (
    ReferralCommissionHook,
    ReferralResolver,
    StaticReferralResolver,
)
from accrual_services.scheduler import DistributionScheduler
from accrual_services.withdrawal_settlement import WithdrawalSettlement

logger = get_logger("services.container")


class LedgerServices:
    def __init__(
        self,
        settings: LedgerSettings,
        session_factory: SessionFactory,
        clock: Clock | None = None,
        referral_resolver: ReferralResolver | None = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.policy: BalancePolicy = settings.balance_policy
        self.referral_resolver = referral_resolver or StaticReferralResolver()

        distribution = settings.distribution
        self.orchestrator = DistributionOrchestrator(
            session_factory,
            policy=self.policy,
            clock=self.clock,
            cooldowns=distribution.cooldowns,
            max_workers=distribution.max_workers,
            return_principal_on_completion=distribution.return_principal_on_completion,
        )
        self.referral_hook = ReferralCommissionHook(
            session_factory,
            self.referral_resolver,
            settings.referrals.commission_rate,
            policy=self.policy,
            clock=self.clock,
        )
        self.funding = ContractFunding(
            session_factory,
            policy=self.policy,
            clock=self.clock,
            referral_hook=self.referral_hook,
        )
        self.reconciliation = ReconciliationService(session_factory, self.policy)

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_settings(
        cls,
        settings: LedgerSettings,
        session_factory: SessionFactory | None = None,
        clock: Clock | None = None,
        referral_resolver: ReferralResolver | None = None,
        create_schema: bool = False,
    ) -> LedgerServices:
        """Wire every service from ``settings``.

        Args:
            settings: Loaded ``LedgerSettings``.
            session_factory: Existing factory; when None an engine is built
                from ``settings.database``.
            clock: Optional clock for deterministic testing.
            referral_resolver: Referrer lookup; defaults to an empty
                static resolver (no commissions).
            create_schema: Create missing tables on the new engine.
        """
        configure_logging(level=settings.logging.level)
        if session_factory is None:
            engine = build_engine(
                settings.database.url,
                echo=settings.database.echo,
                statement_timeout_seconds=settings.database.statement_timeout_seconds,
            )
            if create_schema:
                create_tables(engine)
            session_factory = build_session_factory(engine)
            logger.info("ledger_engine_built", extra={"dialect": engine.dialect.name})
        return cls(settings, session_factory, clock, referral_resolver)

    # -------------------------------------------------------------------------
    # Session-scoped services
    # -------------------------------------------------------------------------

    def writer_for(self, session: Session) -> LedgerWriter:
        return LedgerWriter(session, self.policy, self.clock)

    def settlement_for(self, session: Session) -> WithdrawalSettlement:
        withdrawals = self.settings.withdrawals
        return WithdrawalSettlement(
            session,
            self.policy,
            self.clock,
            priority=withdrawals.priority,
            refund_component=withdrawals.refund_component,
        )

    def contracts_for(self, session: Session) -> ContractService:
        return ContractService(
            session,
            self.policy,
            self.clock,
            self.settings.distribution.return_principal_on_completion,
        )

    def plans_for(self, session: Session) -> PlanService:
        return PlanService(session, self.clock)

    def cooldowns_for(self, session: Session) -> CooldownService:
        return CooldownService(session, self.clock)

    # -------------------------------------------------------------------------
    # Scheduler
    # -------------------------------------------------------------------------

    def create_scheduler(self, actor_id: UUID | None = None) -> DistributionScheduler:
        scheduler = self.settings.distribution.scheduler
        return DistributionScheduler(
            self.orchestrator,
            classes=scheduler.classes,
            poll_seconds=scheduler.poll_seconds,
            actor_id=actor_id,
        )
