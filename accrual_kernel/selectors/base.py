"""
BaseSelector -- read-only query side.

Selectors take the caller's session, never add, flush or commit, and
return frozen DTOs rather than ORM instances.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    def __init__(self, session: Session):
        self.session = session
