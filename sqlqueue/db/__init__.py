"""
Database module.
Contains database connection, table definition, and repository implementations.
"""

from sqlqueue.db.connection import (
    ConnectionProvider,
    close_db,
    get_connection_provider,
    get_engine,
    get_test_engine,
    init_db,
)
from sqlqueue.db.models import build_queue_table
from sqlqueue.db.repository import QueueRepository

__all__ = [
    "ConnectionProvider",
    "get_connection_provider",
    "get_engine",
    "get_test_engine",
    "init_db",
    "close_db",
    "build_queue_table",
    "QueueRepository",
]
