"""
CooldownService -- persisted per-class distribution cooldown.

The last run of each contract class is a DistributionRunMarker row.  A
claim reads the row, rejects inside the window, and otherwise moves
``last_run_at`` forward with a compare-and-set UPDATE keyed on the value
it read; the first marker for a class is inserted under its unique
constraint.  Whoever loses either race is rejected exactly like a caller
inside the window, so at most one run per window starts across all
processes sharing the store.
"""

import math
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from accrual_kernel.domain.dtos import CooldownStatus
from accrual_kernel.domain.values import ContractClass
from accrual_kernel.exceptions import OnCooldownError
from accrual_kernel.logging_config import get_logger
from accrual_kernel.models.run_marker import DistributionRunMarker
from accrual_kernel.services.base import BaseService

logger = get_logger("services.cooldown")


def format_remaining(seconds: int) -> str:
    """Human-readable wait, e.g. ``"23h 59m"`` or ``"45s"``."""
    if seconds <= 0:
        return "0s"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


class CooldownService(BaseService):
    def _marker(self, contract_class: ContractClass) -> DistributionRunMarker | None:
        return self.session.execute(
            select(DistributionRunMarker)
            .where(DistributionRunMarker.contract_class == contract_class)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _status_from(
        self,
        contract_class: ContractClass,
        window: timedelta,
        last_run_at: datetime | None,
        now: datetime,
    ) -> CooldownStatus:
        if last_run_at is None:
            return CooldownStatus(
                contract_class=contract_class,
                window_seconds=int(window.total_seconds()),
                last_run_at=None,
                next_allowed_at=None,
                remaining_seconds=0,
            )
        next_allowed = last_run_at + window
        remaining = max(0, math.ceil((next_allowed - now).total_seconds()))
        return CooldownStatus(
            contract_class=contract_class,
            window_seconds=int(window.total_seconds()),
            last_run_at=last_run_at,
            next_allowed_at=next_allowed,
            remaining_seconds=remaining,
        )

    def status(
        self,
        contract_class: ContractClass | str,
        window: timedelta,
    ) -> CooldownStatus:
        contract_class = ContractClass.parse(contract_class)
        marker = self._marker(contract_class)
        return self._status_from(
            contract_class,
            window,
            marker.last_run_at if marker else None,
            self.clock.now(),
        )

    def _reject(self, status: CooldownStatus) -> OnCooldownError:
        logger.info(
            "distribution_on_cooldown",
            extra={
                "contract_class": status.contract_class.value,
                "remaining_seconds": status.remaining_seconds,
                "remaining": format_remaining(status.remaining_seconds),
            },
        )
        return OnCooldownError(
            contract_class=status.contract_class.value,
            remaining_seconds=status.remaining_seconds,
            next_allowed_at=status.next_allowed_at,
        )

    def claim(
        self,
        contract_class: ContractClass | str,
        window: timedelta,
        actor_id: UUID | None = None,
        run_id: UUID | None = None,
    ) -> CooldownStatus:
        """
        Record a run starting now, or raise OnCooldownError.

        Returns the status as seen right after the claim (remaining equals
        the full window).
        """
        contract_class = ContractClass.parse(contract_class)
        now = self.clock.now()
        marker = self._marker(contract_class)

        if marker is None:
            savepoint = self.session.begin_nested()
            try:
                self.session.add(
                    DistributionRunMarker(
                        id=uuid4(),
                        contract_class=contract_class,
                        last_run_at=now,
                        last_run_by_id=actor_id,
                        last_run_id=run_id,
                        created_at=now,
                        updated_at=now,
                        created_by_id=actor_id,
                    )
                )
                self.session.flush()
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                raise self._lost_race(contract_class, window, now) from None
        else:
            current = self._status_from(contract_class, window, marker.last_run_at, now)
            if current.on_cooldown:
                raise self._reject(current)
            result = self.session.execute(
                update(DistributionRunMarker)
                .where(
                    DistributionRunMarker.id == marker.id,
                    DistributionRunMarker.last_run_at == marker.last_run_at,
                )
                .values(
                    last_run_at=now,
                    last_run_by_id=actor_id,
                    last_run_id=run_id,
                    updated_at=now,
                    updated_by_id=actor_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise self._lost_race(contract_class, window, now)
            self.session.expire(marker)

        logger.info(
            "distribution_cooldown_claimed",
            extra={
                "contract_class": contract_class.value,
                "window_seconds": int(window.total_seconds()),
                "run_id": str(run_id) if run_id else None,
            },
        )
        return self._status_from(contract_class, window, now, now)

    def _lost_race(
        self,
        contract_class: ContractClass,
        window: timedelta,
        now: datetime,
    ) -> OnCooldownError:
        marker = self._marker(contract_class)
        last_run_at = marker.last_run_at if marker else now
        status = self._status_from(contract_class, window, last_run_at, now)
        if not status.on_cooldown:
            # The winner's window is already over; report one second so the
            # caller simply retries.
            status = CooldownStatus(
                contract_class=contract_class,
                window_seconds=status.window_seconds,
                last_run_at=last_run_at,
                next_allowed_at=now + timedelta(seconds=1),
                remaining_seconds=1,
            )
        return self._reject(status)
