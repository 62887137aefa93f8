"""
Database connection management.
Handles SQLAlchemy engine creation and the connection provider handed to queues.
"""

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy import Connection, Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.pool import NullPool

from sqlqueue.config import get_settings

logger = logging.getLogger(__name__)

# Zero-argument factory returning a fresh connection for one queue call
ConnectionProvider = Callable[[], Connection]

# Seconds a SQLite connection waits on a locked database before failing
SQLITE_BUSY_TIMEOUT = 30

# Global engine instance
_engine: Engine | None = None


def _is_sqlite(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def configure_sqlite(engine: Engine) -> None:
    """
    Make a SQLite engine safe for concurrent queue consumers.

    pysqlite defers BEGIN until the first write and never emits it for
    reads. Every transaction is started explicitly with BEGIN IMMEDIATE
    instead, so competing writers wait on the busy timeout rather than
    failing with "database is locked".

    Args:
        engine: The SQLite engine to configure.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_engine() -> Engine:
    """
    Get or create the database engine.

    Returns:
        Engine: The SQLAlchemy engine instance.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        if _is_sqlite(settings.database_url):
            _engine = create_engine(
                settings.database_url,
                echo=settings.database_echo,
                connect_args={"timeout": SQLITE_BUSY_TIMEOUT},
            )
            configure_sqlite(_engine)
        else:
            _engine = create_engine(
                settings.database_url,
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                echo=settings.database_echo,
                pool_pre_ping=True,
            )
    return _engine


def get_test_engine(database_url: str) -> Engine:
    """
    Create a test database engine with NullPool.

    Args:
        database_url: The database URL for testing.

    Returns:
        Engine: The test SQLAlchemy engine instance.
    """
    if _is_sqlite(database_url):
        engine = create_engine(
            database_url,
            poolclass=NullPool,
            connect_args={"timeout": SQLITE_BUSY_TIMEOUT},
        )
        configure_sqlite(engine)
        return engine
    return create_engine(database_url, poolclass=NullPool)


def init_db() -> Engine:
    """
    Initialize the database engine.
    Should be called on process startup.

    Returns:
        Engine: The initialized engine.
    """
    engine = get_engine()
    logger.info(
        "Database connection initialized",
        extra={"database": engine.url.render_as_string(hide_password=True)}
    )
    return engine


def close_db() -> None:
    """
    Dispose of the database engine.
    Should be called on process shutdown.
    """
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
        logger.info("Database connection closed")


def get_connection_provider() -> ConnectionProvider:
    """
    Get a connection provider bound to the global engine.

    Returns:
        ConnectionProvider: Callable returning a new connection per call.
    """
    return get_engine().connect
