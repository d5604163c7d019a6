"""
Module: homebox_kernel.db.engine
Responsibility: SQLAlchemy engine construction, session factory management,
    and the transactional scope that every API request runs inside.
Architecture position: Kernel > DB.  May import from db/base.py, db/guards.py
    and (inside create_tables only) models/.

Invariants enforced:
    - One logical operation == one transaction.  session_scope() commits on
      success and rolls back on any exception, so a cascade is never visible
      half applied.
    - SQLite: foreign keys are switched on for every connection and every
      transaction starts with BEGIN IMMEDIATE, which takes the write lock up
      front and serialises check-then-act sequences across threads.
    - PostgreSQL: READ COMMITTED plus explicit row locks (FOR UPDATE /
      FOR SHARE) taken by HierarchyService.

Failure modes:
    - RuntimeError if get_engine/get_session_factory is called before
      init_engine_from_url().
    - StoreUnavailableError when the driver reports a transient failure
      (lock timeout, lost connection, pool exhaustion, serialization failure).
      The transaction has been rolled back and is safe to retry.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import (
    DBAPIError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from homebox_kernel.db.guards import register_identity_guards
from homebox_kernel.exceptions import StoreUnavailableError
from homebox_kernel.logging_config import get_logger

logger = get_logger("db.engine")

READ_ONLY_OPTION = "homebox_read_only"

# SQLSTATE classes: 08 connection exception, 40 transaction rollback
# (serialization failure, deadlock), 57 operator intervention.
TRANSIENT_SQLSTATE_CLASSES = frozenset({"08", "40", "57"})

# Drivers report SQLITE_BUSY/SQLITE_LOCKED and connect-time failures only
# through the message text.
TRANSIENT_DRIVER_MESSAGES = (
    "database is locked",
    "database table is locked",
    "database is busy",
    "unable to open database file",
    "could not connect",
    "connection refused",
    "server closed the connection",
)

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def create_store_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    busy_timeout: float = 30.0,
) -> Engine:
    """
    Build an engine for the relational store without touching module state.

    Args:
        database_url: ``sqlite:///path.db``, ``sqlite://`` (in-memory, single
            connection) or a ``postgresql://`` URL.
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (file and server databases).
        max_overflow: Connections allowed beyond pool_size.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a server connection is recycled.
        busy_timeout: SQLite only. Seconds a writer waits for the database
            lock before the driver reports "database is locked".

    Returns:
        SQLAlchemy Engine instance.
    """
    url = make_url(database_url)
    register_identity_guards()

    if url.get_backend_name() == "sqlite":
        return _create_sqlite_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            busy_timeout=busy_timeout,
        )

    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def _create_sqlite_engine(
    url,
    *,
    echo: bool,
    pool_size: int,
    max_overflow: int,
    pool_timeout: int,
    busy_timeout: float,
) -> Engine:
    in_memory = url.database in (None, "", ":memory:")
    kwargs: dict = {
        "echo": echo,
        "connect_args": {"check_same_thread": False, "timeout": busy_timeout},
    }
    if in_memory:
        # A private in-memory database lives and dies with its connection.
        kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
        )

    engine = create_engine(url, **kwargs)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Take transaction control away from pysqlite so the BEGIN below
        # is the only one ever issued.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(READ_ONLY_OPTION):
            # WAL readers see one snapshot and never block writers.
            conn.exec_driver_sql("BEGIN DEFERRED")
        else:
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    busy_timeout: float = 30.0,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    A second call replaces the first.  All subsequent get_engine /
    get_session_factory / session_scope calls use this engine.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = create_store_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        busy_timeout=busy_timeout,
    )
    _SessionFactory = create_session_factory(_engine)

    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
    )
    return _engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def get_engine() -> Engine:
    """
    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Each request thread creates its own session from this factory.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def is_transient_store_error(exc: BaseException) -> bool:
    """
    True for driver failures that a retry of the whole operation can cure:
    pool exhaustion, a lost connection, lock contention, serialization
    failure.  Anything else the driver raises (an arithmetic overflow, a
    malformed statement) describes the data or the code and is not retried.
    """
    if isinstance(exc, PoolTimeoutError):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated or isinstance(exc, InterfaceError):
        return True
    if not isinstance(exc, OperationalError):
        return False

    sqlstate = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    if sqlstate:
        return sqlstate[:2] in TRANSIENT_SQLSTATE_CLASSES
    message = str(exc.orig).lower()
    return any(fragment in message for fragment in TRANSIENT_DRIVER_MESSAGES)


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session] | None = None,
    read_only: bool = False,
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around one logical operation.

    Postconditions: On normal exit the session is committed and closed.
        On exception the session is rolled back and closed.  With
        read_only, SQLite opens a deferred transaction instead of taking
        the write lock; nothing prevents writes, it only stops reads from
        queueing behind writers.  Transient
        driver failures are re-raised as StoreUnavailableError; every other
        exception propagates unchanged.

    Usage:
        with session_scope(factory) as session:
            HierarchyService(session, clock, ids).create_location("Garage")
    """
    factory = session_factory or get_session_factory()
    session = factory()
    logger.debug("transaction_started", extra={"read_only": read_only})
    try:
        if read_only:
            session.connection(execution_options={READ_ONLY_OPTION: True})
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception as exc:
        try:
            session.rollback()
        except SQLAlchemyError:
            logger.warning("transaction_rollback_failed", exc_info=True)
        logger.warning(
            "transaction_rolled_back",
            extra={"error_type": type(exc).__name__},
        )
        if is_transient_store_error(exc):
            orig = getattr(exc, "orig", None)
            raise StoreUnavailableError(str(orig or exc)) from exc
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """
    Create the locations/containers/items tables if they do not exist.

    Preconditions: engine given, or init_engine_from_url() has been called.
    """
    from homebox_kernel.db.base import Base
    import homebox_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from homebox_kernel.db.base import Base
    import homebox_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory (test cleanup)."""
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
    target = engine or _engine
    return target is not None and target.dialect.name == "postgresql"
