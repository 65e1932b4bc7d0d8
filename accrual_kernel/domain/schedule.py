"""
Period arithmetic for contract schedules.

Pure functions over (start, now, unit, duration).  A contract's period
``n`` (1-based) begins at ``start + (n - 1) * unit``; its key is that
instant truncated to the unit in UTC.  Period ``n`` is owed once ``n``
whole units have elapsed since ``start``.

    start = 2024-01-01 10:30, unit = day, now = 2024-01-04 11:00
    elapsed = 3 -> keys 2024-01-01, 2024-01-02, 2024-01-03 (00:00 UTC)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Collection, Iterable

from accrual_kernel.domain.values import PeriodUnit


@dataclass(frozen=True)
class PeriodSlot:
    """One owed period: its 1-based number and its idempotency key."""

    number: int
    key: datetime


@dataclass(frozen=True)
class ScheduleState:
    elapsed: int
    missing: tuple[PeriodSlot, ...]
    ready_to_complete: bool


def truncate(instant: datetime, unit: PeriodUnit) -> datetime:
    instant = instant.astimezone(timezone.utc)
    if unit is PeriodUnit.DAY:
        return instant.replace(hour=0, minute=0, second=0, microsecond=0)
    return instant.replace(minute=0, second=0, microsecond=0)


def elapsed_periods(
    start: datetime,
    now: datetime,
    unit: PeriodUnit,
    duration: int,
) -> int:
    """Whole periods between start and now, clamped to [0, duration]."""
    if now <= start:
        return 0
    whole = (now - start) // unit.length
    return max(0, min(int(whole), duration))


def period_key(start: datetime, number: int, unit: PeriodUnit) -> datetime:
    if number < 1:
        raise ValueError(f"period numbers start at 1, got {number}")
    return truncate(start + (number - 1) * unit.length, unit)


def period_slots(start: datetime, unit: PeriodUnit, count: int) -> list[PeriodSlot]:
    return [PeriodSlot(n, period_key(start, n, unit)) for n in range(1, count + 1)]


def resolve_schedule(
    start: datetime,
    now: datetime,
    unit: PeriodUnit,
    duration: int,
    recorded_keys: Iterable[datetime],
) -> ScheduleState:
    """
    Owed-but-unrecorded periods, ascending by number.

    ``ready_to_complete`` is set when every period of the full duration has
    elapsed and is recorded.
    """
    elapsed = elapsed_periods(start, now, unit, duration)
    recorded: Collection[datetime] = {k.astimezone(timezone.utc) for k in recorded_keys}
    missing = tuple(
        slot for slot in period_slots(start, unit, elapsed) if slot.key not in recorded
    )
    ready = elapsed == duration and not missing
    return ScheduleState(elapsed=elapsed, missing=missing, ready_to_complete=ready)
