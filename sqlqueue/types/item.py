"""
Item-related type definitions for internal use.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel

from sqlqueue.constants import Outcome

# Type alias for processor functions used by take_execute_commit
Processor = Callable[[str], Outcome]


@dataclass(frozen=True)
class Candidate:
    """
    An unclaimed row as seen by the look-ahead scan.

    The version is the value the claim update must still match.
    """

    id: str
    ref_id: str
    version: int


@dataclass
class ItemRow:
    """
    Full state of one queue row.
    Used for inspection; the claim protocol only needs a Candidate.
    """

    id: str
    ref_id: str
    version: int
    last_grabbed_at: datetime | None
    grabbed: bool
    retried: int


class QueueStats(BaseModel):
    """
    Point-in-time counts for a queue table.

    outstanding counts every row, including rows currently claimed.
    """

    outstanding: int
    claimed: int
    available: int
