"""
Module: stock_kernel.db.engine
Responsibility: Owns the process-wide Engine and Session factory and the
    schema create/drop helpers.
Architecture position: Kernel > DB.  Imports models only inside
    create_tables/drop_tables so every mapped table is registered.

Backends:
    - PostgreSQL (production): READ COMMITTED, pooled, pre-pinged.  Stock
      levels, transfer/sale headers and sequence counters are serialized
      with SELECT ... FOR UPDATE, not with a stricter isolation level.
    - SQLite (local runs, default test database): pysqlite's implicit
      transaction handling is switched off so SQLAlchemy emits BEGIN and
      SAVEPOINT itself.  The savepoints behind InventoryOperations attempts
      and get-or-create depend on it.  ``sqlite://`` gets a StaticPool so
      every session sees the same in-memory database.

Failure modes:
    - RuntimeError from the getters before init_engine_from_url().
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from stock_kernel.db.immutability import register_immutability_listeners
from stock_kernel.logging_config import configure_logging, get_logger

if TYPE_CHECKING:
    from stock_config.schema import LedgerSettings

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Stock kernel engine not initialized; call init_engine_from_url() first."


def _sqlite_engine(url: URL, echo: bool) -> Engine:
    in_memory = url.database in (None, "", ":memory:")
    engine = create_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool if in_memory else None,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def _postgres_engine(url: URL, echo: bool, **pool_options) -> Engine:
    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        isolation_level="READ COMMITTED",
        **pool_options,
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory, replacing any previous ones,
    and install the ORM immutability listeners.

    Pool arguments apply to PostgreSQL only.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    backend = url.get_backend_name()
    if backend == "sqlite":
        engine = _sqlite_engine(url, echo)
    else:
        engine = _postgres_engine(
            url,
            echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
        )

    if _engine is not None:
        _engine.dispose()
    _engine = engine
    _SessionFactory = sessionmaker(bind=engine, expire_on_commit=False)
    register_immutability_listeners()

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"backend": backend, "database": url.render_as_string(hide_password=True)},
    )
    return engine


def init_engine_from_settings(settings: "LedgerSettings", echo: bool = False) -> Engine:
    """Initialise from ``stock_config`` settings; ``database_url`` must be set."""
    if not settings.database_url:
        raise RuntimeError("LedgerSettings.database_url is not configured")
    return init_engine_from_url(settings.database_url, echo=echo)


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers (worker threads) that need one session each."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on success, roll back and re-raise on error, always close.

    For callers batching several operations into one transaction::

        with session_scope() as session:
            ops = InventoryOperations(session, tenants, identity, auto_commit=False)
            ops.initiate_transfer(...)
            ops.deduct_for_sale(...)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_scope_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from stock_kernel.db.base import Base

    import stock_kernel.models  # noqa: F401
    import stock_kernel.services.sequence_service  # noqa: F401

    return Base.metadata


def create_tables() -> None:
    metadata = _metadata()
    metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(metadata.tables)})


def drop_tables() -> None:
    """Drop every kernel table.  Tests and local resets only."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


atexit.register(reset_engine)
