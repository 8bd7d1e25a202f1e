"""
Storage - Database.

============================================================
RESPONSIBILITY
============================================================
Manages the SQLAlchemy engine and sessions for the page store.

- Builds the engine from DatabaseConfig
- Provides the session factory and session context managers
- Explicit transaction boundaries
- Schema creation and verification

============================================================
USAGE
============================================================
    with transaction_scope() as session:
        repo = PageRepository(session, registry)
        repo.save(model)

Repositories commit their own unit of work; transaction_scope
is for callers that batch several operations.

============================================================
"""

import logging
from contextlib import contextmanager
from typing import Generator, List, Optional

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from storage.config import DatabaseConfig
from storage.models import Base


logger = logging.getLogger(__name__)


# =============================================================
# CUSTOM EXCEPTIONS
# =============================================================


class DatabasePersistenceError(Exception):
    """Raised when database persistence fails."""
    pass


class DatabaseConnectionError(DatabasePersistenceError):
    """Raised when database connection fails."""
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    """Raised when database initialization fails."""
    pass


# =============================================================
# DATABASE ENGINE
# =============================================================

REQUIRED_TABLES = [
    "pages",
    "page_fields",
    "blocks",
    "block_fields",
    "page_blocks",
]

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def create_database_engine(config: Optional[DatabaseConfig] = None) -> Engine:
    """
    Create a SQLAlchemy engine.

    Args:
        config: Connection settings (defaults to DatabaseConfig.from_env())

    Returns:
        SQLAlchemy Engine
    """
    config = config or DatabaseConfig.from_env()

    logger.info(f"Creating database engine for: {config.safe_url()}")

    engine = create_engine(config.url, **config.engine_kwargs())

    if config.is_sqlite:
        # SQLite leaves foreign keys off unless asked per connection
        @event.listens_for(engine, "connect")
        def enable_foreign_keys(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    @event.listens_for(engine, "checkout")
    def on_checkout(dbapi_conn, connection_record, connection_proxy):
        logger.debug("Database connection checked out from pool")

    return engine


def get_engine() -> Engine:
    """Get the process-wide engine, creating it if necessary."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory with the settings the repositories expect."""
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )


def get_session_factory() -> sessionmaker:
    """Get the process-wide session factory, creating it if necessary."""
    global _SessionFactory
    if _SessionFactory is None:
        _SessionFactory = create_session_factory(get_engine())
    return _SessionFactory


def dispose_engine() -> None:
    """Dispose the process-wide engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


# =============================================================
# SESSION MANAGEMENT
# =============================================================


def get_session() -> Session:
    """
    Get a new database session.

    Caller is responsible for committing/closing.
    Prefer get_db_session() or transaction_scope().
    """
    return get_session_factory()()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Session context manager with rollback on error and cleanup.

    Does not commit; the repositories do.
    """
    session = get_session()
    try:
        yield session
    except Exception as e:
        logger.error(f"Error in session, rolling back: {e}")
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction_scope() -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs. Database errors are
    re-raised as DatabasePersistenceError; anything else is
    re-raised unchanged after rollback.
    """
    session = get_session()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise DatabasePersistenceError(f"Transaction failed: {e}") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================


def verify_database_connection(engine: Optional[Engine] = None) -> bool:
    """
    Verify the database answers a trivial query.

    Raises:
        DatabaseConnectionError: If connection fails
    """
    engine = engine or get_engine()

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        logger.info("Database connection verified successfully")
        return True
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Create all page store tables that do not exist yet.

    Raises:
        DatabaseInitializationError: If table creation fails
    """
    engine = engine or get_engine()

    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise DatabaseInitializationError(f"Table creation failed: {e}") from e


def drop_all_tables(engine: Optional[Engine] = None) -> None:
    """Drop every page store table."""
    engine = engine or get_engine()
    logger.warning("Dropping all page store tables")
    Base.metadata.drop_all(bind=engine)


def missing_tables(engine: Optional[Engine] = None) -> List[str]:
    """Names of required tables not present in the database."""
    engine = engine or get_engine()
    existing = set(inspect(engine).get_table_names())
    missing = []
    for table in REQUIRED_TABLES:
        if table in existing:
            logger.info(f"  [OK] Table verified: {table}")
        else:
            logger.warning(f"  [!!] Table missing: {table}")
            missing.append(table)
    return missing


def initialize_database(engine: Optional[Engine] = None) -> None:
    """
    Verify connection, create tables, verify tables.

    Raises:
        DatabasePersistenceError: On any failure
    """
    engine = engine or get_engine()

    verify_database_connection(engine)
    create_all_tables(engine)

    missing = missing_tables(engine)
    if missing:
        raise DatabaseInitializationError(
            f"Tables missing after creation: {', '.join(missing)}"
        )


__all__ = [
    "create_database_engine",
    "create_session_factory",
    "get_engine",
    "get_session",
    "get_db_session",
    "get_session_factory",
    "dispose_engine",
    "transaction_scope",
    "initialize_database",
    "verify_database_connection",
    "create_all_tables",
    "drop_all_tables",
    "missing_tables",
    "REQUIRED_TABLES",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
