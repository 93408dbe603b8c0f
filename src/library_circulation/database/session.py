"""
Database session management for the library circulation core.

``DatabaseManager`` is the persistence collaborator's transaction boundary.
It owns the engine and the session factory and offers two scopes:

1. ``session_scope()``: a plain unit of work for reads and simple writes.
2. ``run_atomic(fn)``: runs ``fn(session)`` in one transaction, commits on
   normal return and rolls back on any exception. Driver and optimistic-lock
   failures are translated into the core's transient errors so callers can
   decide whether to retry.

Sessions are short-lived and never shared between threads; each call gets
its own session and the session is closed on every exit path.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from ..config import get_config
from ..errors import ConcurrentModificationError, PersistenceUnavailableError
from .schema import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Driver messages that mean the store is busy or unreachable, not misused
_UNAVAILABLE_MARKERS = (
    "database is locked",
    "database is busy",
    "database table is locked",
    "lock timeout",
    "timed out",
    "could not connect",
    "connection refused",
    "server closed the connection",
)


def is_unavailable(error: Exception) -> bool:
    """
    Whether a driver error is a lock, timeout or lost connection.

    Schema and programming errors (a missing table, bad SQL) are not: they
    will fail the same way on every retry.
    """
    if isinstance(error, PoolTimeoutError):
        return True
    if not isinstance(error, DBAPIError):
        return False
    if error.connection_invalidated:
        return True
    if not isinstance(error, OperationalError):
        return False
    message = str(error.orig).lower()
    return any(marker in message for marker in _UNAVAILABLE_MARKERS)


class DatabaseManager:
    """
    Manages database connections and transactions.

    The manager is an injected collaborator with an explicit lifecycle:
    create it, ``init_database()`` if needed, hand it to the coordinator, and
    ``close()`` it on shutdown.
    """

    def __init__(self, database_url: str | None = None, lock_timeout: float | None = None):
        """
        Initialize the database manager.

        Args:
            database_url: SQLAlchemy database URL. If None, uses the configured one.
            lock_timeout: Seconds to wait for a lock or a pooled connection.
        """
        if database_url is None or lock_timeout is None:
            config = get_config()
            if lock_timeout is None:
                lock_timeout = config.lock_timeout_seconds
            if database_url is None:
                database_url = config.get_database_url()
                if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
                    Path(database_url.removeprefix("sqlite:///")).parent.mkdir(
                        exist_ok=True, parents=True
                    )
                logger.info("Using database at: %s", database_url)

        self.database_url = database_url
        self.lock_timeout = lock_timeout
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def is_in_memory(self) -> bool:
        return self.database_url.startswith("sqlite") and (
            ":memory:" in self.database_url or self.database_url.rstrip("/") == "sqlite:"
        )

    @property
    def engine(self) -> Engine:
        """
        Get or create the database engine.

        File-backed SQLite gets one connection per thread from the pool and a
        driver busy timeout; in-memory SQLite shares a single connection
        (``StaticPool``) and is only suitable for single-threaded use.
        """
        if self._engine is None:
            if self.database_url.startswith("sqlite"):
                connect_args = {"check_same_thread": False, "timeout": self.lock_timeout}
                if self.is_in_memory:
                    self._engine = create_engine(
                        self.database_url,
                        poolclass=StaticPool,
                        connect_args=connect_args,
                        echo=False,
                    )
                else:
                    self._engine = create_engine(
                        self.database_url,
                        connect_args=connect_args,
                        pool_timeout=self.lock_timeout,
                        echo=False,
                    )

                @event.listens_for(self._engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                    pool_timeout=self.lock_timeout,
                    echo=False,
                )

            logger.info("Database engine created: %s", self._engine.url)

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                # Flushes happen explicitly in repository.save()
                autoflush=False,
                # Keep objects usable after commit
                expire_on_commit=False,
            )
        return self._session_factory

    def create_session(self) -> Session:
        """Create a new database session. Callers must close it."""
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for database operations.

        ```python
        with db_manager.session_scope() as session:
            book = BookRepository(session).get_by_id(isbn)
        ```
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
            logger.debug("Database transaction committed successfully")
        except Exception:
            logger.debug("Rolling back database transaction")
            session.rollback()
            raise
        finally:
            session.close()

    def run_atomic(self, fn: Callable[[Session], T], operation: str = "atomic unit") -> T:
        """
        Execute ``fn`` inside a single transaction.

        Commits when ``fn`` returns normally, rolls back on any exception.

        Raises:
            ConcurrentModificationError: a version-checked row changed underneath us
            PersistenceUnavailableError: locks, timeouts or lost connections
            Any exception raised by ``fn`` itself, after rollback
        """
        session = self.create_session()
        try:
            result = fn(session)
            session.commit()
            return result
        except StaleDataError as e:
            session.rollback()
            logger.info("Optimistic lock conflict during %s: %s", operation, e)
            raise ConcurrentModificationError(operation) from e
        except Exception as e:
            session.rollback()
            if is_unavailable(e):
                logger.warning("Persistence failure during %s: %s", operation, e)
                raise PersistenceUnavailableError(operation, str(getattr(e, "orig", e))) from e
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Initialize the database schema.

        Args:
            drop_existing: If True, drop all tables before creating
        """
        engine = self.engine

        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=engine)

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialization complete")

    def verify_connection(self) -> bool:
        """Verify the database connection is working."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection verified")
            return True
        except DBAPIError:
            logger.exception("Database connection failed")
            return False

    def close(self) -> None:
        """Close the database connection and cleanup resources."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


_db_manager: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """
    Get the default database manager used by the tool surface.

    Library code takes a ``DatabaseManager`` by injection; this accessor only
    exists so the server process has one place to build it.
    """
    global _db_manager  # noqa: PLW0603

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)

    return _db_manager


def reset_db_manager() -> None:
    """Dispose and forget the default database manager."""
    global _db_manager  # noqa: PLW0603

    if _db_manager is not None:
        _db_manager.close()
    _db_manager = None


def safe_query(session: Session, query_func: Callable[[Session], T], operation: str) -> T:
    """
    Execute a read with the core's error translation.

    Raises:
        PersistenceUnavailableError: If the driver reports a lock, timeout or
            connection problem
    """
    try:
        return query_func(session)
    except (OperationalError, PoolTimeoutError) as e:
        if not is_unavailable(e):
            raise
        logger.exception("Query failed: %s", operation)
        raise PersistenceUnavailableError(operation, str(getattr(e, "orig", e))) from e
