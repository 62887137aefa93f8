"""
Type definitions for the queue.
"""

from sqlqueue.types.item import (
    Candidate,
    ItemRow,
    Processor,
    QueueStats,
)

__all__ = [
    "Candidate",
    "ItemRow",
    "Processor",
    "QueueStats",
]
