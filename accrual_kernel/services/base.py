"""
BaseService -- common constructor for kernel services.

Services flush within the caller's transaction and never commit or roll
back; unit_of_work() in db/engine.py owns the boundary.
"""

from abc import ABC

from sqlalchemy.orm import Session

from accrual_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
