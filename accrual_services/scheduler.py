"""
DistributionScheduler -- in-process polling caller of the orchestrator.

Contract:
    - ``tick()`` triggers one run per configured class.  A class still
      inside its cooldown raises OnCooldownError; that is the normal case
      and is logged at DEBUG.
    - ``start()`` / ``stop()`` run ``tick()`` on a daemon thread every
      ``poll_seconds``.
    - ``stop()`` sets the cancel event; an in-flight run stops between
      contracts.

Non-goals:
    - NOT a distributed scheduler.  Several processes may poll the same
      store; the persisted cooldown marker lets only one run through.
"""

from __future__ import annotations

import threading
from typing import Sequence
from uuid import UUID

from accrual_kernel.domain.values import ContractClass
from accrual_kernel.exceptions import OnCooldownError
from accrual_kernel.logging_config import get_logger

from accrual_services.distribution_orchestrator import DistributionOrchestrator
from accrual_services.types import DistributionSummary

logger = get_logger("services.scheduler")


class DistributionScheduler:
    def __init__(
        self,
        orchestrator: DistributionOrchestrator,
        classes: Sequence[ContractClass] = tuple(ContractClass),
        poll_seconds: float = 60,
        actor_id: UUID | None = None,
    ):
        self._orchestrator = orchestrator
        self._classes = tuple(ContractClass.parse(c) for c in classes)
        self._poll_seconds = poll_seconds
        self._actor_id = actor_id
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> list[DistributionSummary]:
        """Trigger every configured class once.  Returns the runs that happened."""
        summaries = []
        for contract_class in self._classes:
            if self._stop_event.is_set():
                break
            try:
                summaries.append(
                    self._orchestrator.run_distribution(
                        contract_class,
                        actor_id=self._actor_id,
                        cancel_event=self._stop_event,
                    )
                )
            except OnCooldownError as exc:
                logger.debug(
                    "scheduled_run_on_cooldown",
                    extra={
                        "contract_class": contract_class.value,
                        "remaining_seconds": exc.remaining_seconds,
                    },
                )
            except Exception:
                logger.exception(
                    "scheduled_run_failed",
                    extra={"contract_class": contract_class.value},
                )
        return summaries

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="distribution-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={
                "poll_seconds": self._poll_seconds,
                "classes": [c.value for c in self._classes],
            },
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the polling thread to exit."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._poll_seconds)
