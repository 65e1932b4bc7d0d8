"""
Module: accrual_kernel.db.engine
Responsibility: Engine construction, session factories and the transactional
    scopes every ledger operation runs in.
Architecture position: Kernel > DB.  May import db/base.py and
    db/immutability.py; create_tables() imports the models package.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED with explicit FOR UPDATE row locks
      and a server-side statement_timeout.
    - SQLite runs every transaction as BEGIN IMMEDIATE with the driver's own
      transaction handling disabled, so writers serialize and SAVEPOINTs
      behave as on PostgreSQL.  The busy timeout doubles as the statement
      timeout.
    - unit_of_work() commits on success and rolls back on any exception;
      SQLAlchemyError is re-raised as PersistenceError.

Failure modes:
    - RuntimeError if the module-level accessors are used before
      init_engine_from_url().
    - PersistenceError from unit_of_work() when the store fails (including
      lock waits exceeding the timeout).
"""

import atexit
from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from accrual_kernel.exceptions import AccrualLedgerError, PersistenceError
from accrual_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

SessionFactory = Callable[[], Session]

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_transaction_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    echo: bool = False,
    statement_timeout_seconds: float = 30,
    pool_size: int = 10,
    max_overflow: int = 10,
) -> Engine:
    """
    Create an engine for PostgreSQL or SQLite.

    In-memory SQLite URLs get a StaticPool so that every session sees the
    same database; file-backed SQLite and PostgreSQL get a QueuePool.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        in_memory = url.database in (None, "", ":memory:")
        engine = create_engine(
            url,
            echo=echo,
            poolclass=StaticPool if in_memory else QueuePool,
            connect_args={
                "check_same_thread": False,
                "timeout": statement_timeout_seconds,
            },
        )
        _install_sqlite_transaction_hooks(engine)
    else:
        timeout_ms = int(statement_timeout_seconds * 1000)
        engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            isolation_level="READ COMMITTED",
            connect_args={"options": f"-c statement_timeout={timeout_ms}"},
        )

    from accrual_kernel.db.immutability import register_immutability_listeners

    register_immutability_listeners()
    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    statement_timeout_seconds: float = 30,
) -> Engine:
    """
    Initialize the process-wide engine and session factory.

    A second call replaces the first.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(
        database_url,
        echo=echo,
        statement_timeout_seconds=statement_timeout_seconds,
    )
    _SessionFactory = build_session_factory(_engine)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "echo": echo,
            "statement_timeout_seconds": statement_timeout_seconds,
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Session factory for the process-wide engine (one session per thread)."""
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def unit_of_work(
    session_factory: SessionFactory,
    operation: str = "unit_of_work",
) -> Generator[Session, None, None]:
    """
    One all-or-nothing transaction.

    Commits on normal exit.  On any exception the session is rolled back
    and closed; ledger errors propagate unchanged, store errors are
    re-raised as PersistenceError.

    Usage:
        with unit_of_work(session_factory, "apply_accrual") as session:
            LedgerWriter(session, settings).apply_accrual(...)
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except AccrualLedgerError as exc:
        session.rollback()
        logger.debug(
            "transaction_rolled_back",
            extra={"operation": operation, "error_code": exc.code},
        )
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning(
            "transaction_rolled_back",
            extra={"operation": operation},
            exc_info=True,
        )
        detail = str(getattr(exc, "orig", None) or exc)
        raise PersistenceError(operation, detail) from exc
    except BaseException:
        session.rollback()
        logger.warning(
            "transaction_rolled_back",
            extra={"operation": operation},
            exc_info=True,
        )
        raise
    finally:
        session.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """unit_of_work() over the process-wide session factory."""
    with unit_of_work(get_session_factory(), "session_scope") as session:
        yield session


def create_tables(engine: Engine | None = None) -> None:
    """Create every ledger table on the given (or process-wide) engine."""
    from accrual_kernel.db.base import Base
    import accrual_kernel.models  # noqa: F401  registers the mappers

    engine = engine if engine is not None else get_engine()
    Base.metadata.create_all(engine)
    logger.info("tables_created", extra={"dialect": engine.dialect.name})


def drop_tables(engine: Engine | None = None) -> None:
    """Drop all tables. Primarily for testing."""
    from accrual_kernel.db.base import Base
    import accrual_kernel.models  # noqa: F401

    engine = engine if engine is not None else get_engine()
    Base.metadata.drop_all(engine)


def reset_engine() -> None:
    """Dispose and forget the process-wide engine.  Used by test cleanup."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None
    _SessionFactory = None


def _atexit_dispose():
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres(engine: Engine | None = None) -> bool:
    engine = engine if engine is not None else _engine
    return engine is not None and engine.dialect.name == "postgresql"
