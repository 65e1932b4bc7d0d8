"""Database layer - engine, base classes and column types."""

from accrual_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from accrual_kernel.db.engine import (
    build_engine,
    build_session_factory,
    create_tables,
    get_engine,
    get_session_factory,
    unit_of_work,
)
from accrual_kernel.db.types import DecimalString, MinorUnits

__all__ = [
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "DecimalString",
    "MinorUnits",
    "build_engine",
    "build_session_factory",
    "create_tables",
    "get_engine",
    "get_session_factory",
    "unit_of_work",
]
