"""
DistributionOrchestrator -- credits every owed period of one contract class.

Contract:
    ``run_distribution(contract_class)`` claims the class's cooldown, loads
    the active contracts that are owed periods (or are fully credited but
    not yet completed), and for each one drives
    ScheduleResolver -> period_profit -> LedgerWriter.apply_accrual per
    missing period, then completes the contract once all periods are
    recorded.  Always returns a DistributionSummary unless the trigger is
    rejected by the cooldown.

Invariants enforced:
    - Every period credit is its own unit of work; a failure part-way
      through a contract keeps the earlier periods and leaves the rest
      owed for the next run.
    - Duplicate periods (a concurrent or repeated run got there first) and
      contracts that stopped being active mid-run are skipped, not errors.
    - Any other per-contract failure is counted in ``errors`` with a detail
      line and never aborts the run.
    - Cancellation is honoured between contracts only.
    - Each worker opens its own sessions; no session crosses threads.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Mapping
from uuid import UUID, uuid4

from accrual_kernel.db.engine import SessionFactory, unit_of_work
from accrual_kernel.db.types import ZERO
from accrual_kernel.domain.clock import Clock, SystemClock
from accrual_kernel.domain.dtos import ContractInfo
from accrual_kernel.domain.policy import BalancePolicy
from accrual_kernel.domain.schedule import elapsed_periods
from accrual_kernel.domain.values import ContractClass, ContractStatus
from accrual_kernel.exceptions import (
    ContractNotActiveError,
    DuplicatePeriodError,
    PersistenceError,
)
from accrual_kernel.logging_config import LogContext, get_logger
from accrual_kernel.selectors.contract_selector import ContractSelector
from accrual_kernel.services.contract_service import ContractService
from accrual_kernel.services.cooldown_service import CooldownService
from accrual_kernel.services.ledger_writer import LedgerWriter
from accrual_kernel.services.schedule_resolver import ScheduleResolver

from accrual_services.types import ContractOutcome, DistributionSummary, OutcomeStatus

logger = get_logger("services.distribution")


class DistributionOrchestrator:
    """Runs distribution for one contract class at a time.

    Non-goals:
        - Does NOT schedule itself; see DistributionScheduler.
        - Does NOT queue rejected triggers; OnCooldownError goes straight
          back to the caller.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        policy: BalancePolicy | None = None,
        clock: Clock | None = None,
        cooldowns: Mapping[ContractClass, timedelta] | None = None,
        max_workers: int = 1,
        return_principal_on_completion: bool = True,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._session_factory = session_factory
        self._policy = policy or BalancePolicy()
        self._clock = clock or SystemClock()
        self._cooldowns = dict(cooldowns or {})
        self._max_workers = max_workers
        self._return_principal = return_principal_on_completion

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def cooldown_window(self, contract_class: ContractClass) -> timedelta:
        return self._cooldowns.get(contract_class, timedelta(0))

    def run_distribution(
        self,
        contract_class: ContractClass | str,
        actor_id: UUID | None = None,
        cancel_event: threading.Event | None = None,
    ) -> DistributionSummary:
        """Credit every owed period of every eligible contract of the class.

        Raises:
            InvalidContractClassError: unknown class.
            OnCooldownError: the class ran within its cooldown window.
            PersistenceError: the cooldown marker could not be written.
        """
        contract_class = ContractClass.parse(contract_class)
        run_id = uuid4()
        cancel_event = cancel_event or threading.Event()

        with LogContext.bind(run_id=run_id, actor_id=actor_id):
            started_at = self._clock.now()
            t0 = time.monotonic()

            with unit_of_work(self._session_factory, "claim_cooldown") as session:
                CooldownService(session, self._clock).claim(
                    contract_class,
                    self.cooldown_window(contract_class),
                    actor_id=actor_id,
                    run_id=run_id,
                )

            logger.info(
                "distribution_run_started",
                extra={
                    "contract_class": contract_class.value,
                    "max_workers": self._max_workers,
                },
            )

            try:
                candidates = self._load_candidates(contract_class, started_at)
            except PersistenceError as exc:
                logger.exception("distribution_candidates_failed")
                return self._summarize(
                    contract_class,
                    run_id,
                    started_at,
                    outcomes=[],
                    cancelled=False,
                    extra_details=[f"candidate load failed: {exc.detail}"],
                    extra_errors=1,
                )

            outcomes = self._process_all(candidates, actor_id, cancel_event)
            cancelled = any(o.status == OutcomeStatus.NOT_STARTED for o in outcomes)
            summary = self._summarize(
                contract_class, run_id, started_at, outcomes, cancelled
            )

            logger.info(
                "distribution_run_completed",
                extra={
                    "contract_class": contract_class.value,
                    "candidates": len(candidates),
                    "processed_contracts": summary.processed_contracts,
                    "periods_credited": summary.periods_credited,
                    "total_amount": summary.total_amount,
                    "completed_contracts": summary.completed_contracts,
                    "skipped": summary.skipped,
                    "errors": summary.errors,
                    "cancelled": summary.cancelled,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return summary

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _load_candidates(
        self,
        contract_class: ContractClass,
        now: datetime,
    ) -> list[ContractInfo]:
        with unit_of_work(self._session_factory, "load_candidates") as session:
            active = ContractSelector(session).active_contracts(contract_class)

        candidates = []
        for contract in active:
            elapsed = elapsed_periods(
                contract.start_at, now, contract.period_unit, contract.duration_periods
            )
            owed = contract.periods_distributed < elapsed
            awaiting_completion = contract.periods_distributed >= contract.duration_periods
            if owed or awaiting_completion:
                candidates.append(contract)
        return candidates

    def _process_all(
        self,
        candidates: list[ContractInfo],
        actor_id: UUID | None,
        cancel_event: threading.Event,
    ) -> list[ContractOutcome]:
        run_context = LogContext.get_all()

        def work(contract: ContractInfo) -> ContractOutcome:
            if cancel_event.is_set():
                return ContractOutcome(
                    contract_id=contract.id,
                    owner_id=contract.owner_id,
                    status=OutcomeStatus.NOT_STARTED,
                    detail="run cancelled before this contract",
                )
            with LogContext.bind(**run_context):
                return self._process_guarded(contract, actor_id)

        if self._max_workers == 1 or len(candidates) <= 1:
            return [work(c) for c in candidates]

        with ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="distribution",
        ) as pool:
            return list(pool.map(work, candidates))

    def _process_guarded(
        self,
        contract: ContractInfo,
        actor_id: UUID | None,
    ) -> ContractOutcome:
        with LogContext.bind(contract_id=contract.id, owner_id=contract.owner_id):
            try:
                return self._process_contract(contract, actor_id)
            except Exception as exc:
                logger.exception("contract_distribution_failed")
                return ContractOutcome(
                    contract_id=contract.id,
                    owner_id=contract.owner_id,
                    status=OutcomeStatus.FAILED,
                    detail=_describe(exc),
                )

    def _process_contract(
        self,
        contract: ContractInfo,
        actor_id: UUID | None,
    ) -> ContractOutcome:
        now = self._clock.now()
        with unit_of_work(self._session_factory, "resolve_schedule") as session:
            schedule = ScheduleResolver(session, self._clock).resolve(contract.id, now)

        if schedule.status != ContractStatus.ACTIVE:
            return ContractOutcome(
                contract_id=contract.id,
                owner_id=contract.owner_id,
                status=OutcomeStatus.SKIPPED,
                detail=f"contract is {schedule.status.value}",
            )

        credited = 0
        amount = ZERO
        duplicates = 0

        def partial(status: OutcomeStatus, detail: str) -> ContractOutcome:
            return ContractOutcome(
                contract_id=contract.id,
                owner_id=contract.owner_id,
                status=status,
                periods_credited=credited,
                amount=amount,
                detail=detail,
            )

        for slot in schedule.missing:
            try:
                with unit_of_work(self._session_factory, "apply_accrual") as session:
                    result = LedgerWriter(session, self._policy, self._clock).apply_accrual(
                        contract.id, slot, schedule.period_amount, actor_id
                    )
            except DuplicatePeriodError:
                duplicates += 1
                continue
            except ContractNotActiveError as exc:
                return partial(
                    OutcomeStatus.CREDITED if credited else OutcomeStatus.SKIPPED,
                    f"stopped at period {slot.number}: contract is {exc.status}",
                )
            except Exception as exc:
                logger.exception(
                    "accrual_failed",
                    extra={"period_number": slot.number, "period_key": slot.key},
                )
                return partial(
                    OutcomeStatus.FAILED,
                    f"period {slot.number} failed after {credited} credited: {_describe(exc)}",
                )
            credited += 1
            amount += result.amount

        try:
            with unit_of_work(self._session_factory, "complete_contract") as session:
                service = ContractService(
                    session, self._policy, self._clock, self._return_principal
                )
                completed = (
                    service.complete_if_fully_distributed(contract.id, actor_id) is not None
                )
        except Exception as exc:
            # Credited periods stay committed; completion is retried next run.
            logger.exception("contract_completion_failed")
            return partial(OutcomeStatus.FAILED, f"completion failed: {_describe(exc)}")

        detail = None
        # Another run already holds these periods: skipped, never an error.
        if duplicates:
            detail = f"{duplicates} period(s) already credited by another run"
        if credited:
            status = OutcomeStatus.CREDITED
        elif duplicates:
            status = OutcomeStatus.SKIPPED
        else:
            status = OutcomeStatus.UP_TO_DATE

        logger.info(
            "contract_distributed",
            extra={
                "periods_credited": credited,
                "amount": amount,
                "duplicates": duplicates,
                "completed": completed,
            },
        )
        return ContractOutcome(
            contract_id=contract.id,
            owner_id=contract.owner_id,
            status=status,
            periods_credited=credited,
            amount=amount,
            completed=completed,
            detail=detail,
        )

    def _summarize(
        self,
        contract_class: ContractClass,
        run_id: UUID,
        started_at: datetime,
        outcomes: list[ContractOutcome],
        cancelled: bool,
        extra_details: list[str] | None = None,
        extra_errors: int = 0,
    ) -> DistributionSummary:
        details = [f"{o.contract_id}: {o.detail}" for o in outcomes if o.detail]
        details.extend(extra_details or [])
        total = sum((o.amount for o in outcomes), Decimal("0.00"))
        return DistributionSummary(
            contract_class=contract_class,
            run_id=run_id,
            started_at=started_at,
            finished_at=self._clock.now(),
            processed_contracts=sum(
                1 for o in outcomes if o.periods_credited > 0 or o.completed
            ),
            periods_credited=sum(o.periods_credited for o in outcomes),
            total_amount=total,
            completed_contracts=sum(1 for o in outcomes if o.completed),
            skipped=sum(1 for o in outcomes if o.status == OutcomeStatus.SKIPPED),
            errors=sum(1 for o in outcomes if o.status == OutcomeStatus.FAILED) + extra_errors,
            cancelled=cancelled,
            outcomes=tuple(outcomes),
            details=tuple(details),
        )


def _describe(exc: Exception) -> str:
    code = getattr(exc, "code", None)
    return f"{code}: {exc}" if code else f"{type(exc).__name__}: {exc}"
