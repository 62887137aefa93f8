"""
SQL-backed Work Queue

A competing-consumers queue whose whole state lives in one relational table.
Claims are taken with a conditional update acting as compare-and-swap, so
any number of processes can share a queue without locks or a coordinator.
"""

__version__ = "1.0.0"

from sqlqueue.config import QueueConfig, Settings, get_settings  # noqa: E402
from sqlqueue.constants import Outcome  # noqa: E402
from sqlqueue.exceptions import InvalidInput, QueueError, StorageFailure  # noqa: E402
from sqlqueue.queue import SQLQueue, create_queue  # noqa: E402
from sqlqueue.types import ItemRow, Processor, QueueStats  # noqa: E402

__all__ = [
    "SQLQueue",
    "create_queue",
    "QueueConfig",
    "Settings",
    "get_settings",
    "Outcome",
    "Processor",
    "ItemRow",
    "QueueStats",
    "QueueError",
    "InvalidInput",
    "StorageFailure",
]
