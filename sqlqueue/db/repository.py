"""
Queue repository for database operations.
Implements the statements behind the claim protocol.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from uuid import uuid4

from sqlalchemy import Connection, Table, delete, func, insert, select, update
from sqlalchemy.schema import CreateTable

from sqlqueue.types.item import Candidate, ItemRow, QueueStats

logger = logging.getLogger(__name__)


class QueueRepository:
    """
    Repository for queue table operations.

    Every method runs as its own committed unit on the wrapped connection,
    so no transaction stays open between calls. Implements:
    - Insertion of new rows
    - Look-ahead scan of unclaimed rows
    - Conditional claim update (compare-and-swap on id, version, grabbed)
    - Release, delete, timeout reclaim and retry pruning
    """

    def __init__(self, connection: Connection, table: Table):
        """
        Initialize the repository.

        Args:
            connection: An open SQLAlchemy connection, owned by the caller.
            table: The queue table.
        """
        self._conn = connection
        self._table = table

    @contextmanager
    def _unit(self) -> Iterator[None]:
        try:
            yield
        except Exception:
            if self._conn.in_transaction():
                self._conn.rollback()
            raise
        else:
            self._conn.commit()

    def create_table(self) -> None:
        """Create the queue table if it does not exist yet."""
        with self._unit():
            self._conn.execute(CreateTable(self._table, if_not_exists=True))

    def insert(self, ref_id: str) -> str:
        """
        Insert a new row in its initial state.

        Args:
            ref_id: The caller's reference.

        Returns:
            The generated row id.
        """
        item_id = str(uuid4())
        with self._unit():
            self._conn.execute(
                insert(self._table).values(
                    id=item_id,
                    ref_id=ref_id,
                    version=1,
                    last_grabbed_at=None,
                    grabbed=0,
                    retried=0,
                )
            )
        return item_id

    def current_time(self) -> datetime:
        """
        Read the database's current timestamp.

        Every consumer stamps and expires claims against this one clock, so
        skew between consumer hosts cannot make a live claim look expired.
        """
        with self._unit():
            return self._conn.execute(select(func.current_timestamp())).scalar_one()

    def count(self) -> int:
        """Count every row in the table, claimed or not."""
        with self._unit():
            return self._conn.execute(
                select(func.count()).select_from(self._table)
            ).scalar_one()

    def scan_available(self, limit: int) -> list[Candidate]:
        """
        Read up to `limit` unclaimed rows.

        No ordering is imposed; rows come back in whatever order the
        database scans them.

        Args:
            limit: Size of the look-ahead window.

        Returns:
            Candidates in scan order.
        """
        t = self._table
        stmt = select(t.c.id, t.c.ref_id, t.c.version).where(t.c.grabbed == 0).limit(limit)
        with self._unit():
            rows = self._conn.execute(stmt).all()
        return [Candidate(id=row.id, ref_id=row.ref_id, version=row.version) for row in rows]

    def claim(self, candidate: Candidate, now: datetime) -> bool:
        """
        Try to take exclusive ownership of a candidate.

        The update only matches while the row still carries the scanned
        version and is unclaimed, so at most one caller wins per version.

        Args:
            candidate: A row returned by scan_available.
            now: Claim timestamp.

        Returns:
            True if this caller now holds the claim.
        """
        t = self._table
        stmt = (
            update(t)
            .where(
                t.c.id == candidate.id,
                t.c.version == candidate.version,
                t.c.grabbed == 0,
            )
            .values(
                version=t.c.version + 1,
                grabbed=1,
                retried=t.c.retried + 1,
                last_grabbed_at=now,
            )
        )
        with self._unit():
            claimed = self._conn.execute(stmt).rowcount
        return claimed == 1

    def release(self, item_id: str) -> bool:
        """
        Clear the claim flag of a row, leaving its counters as they are.

        Returns:
            True if the row still existed.
        """
        t = self._table
        with self._unit():
            released = self._conn.execute(
                update(t).where(t.c.id == item_id).values(grabbed=0)
            ).rowcount
        return released > 0

    def delete(self, item_id: str) -> bool:
        """
        Delete a row.

        Returns:
            True if the row still existed.
        """
        t = self._table
        with self._unit():
            deleted = self._conn.execute(delete(t).where(t.c.id == item_id)).rowcount
        return deleted > 0

    def reclaim_timed_out(self, cutoff: datetime) -> int:
        """
        Release claims taken before the cutoff.

        Args:
            cutoff: Current time minus the claim timeout.

        Returns:
            Number of released rows.
        """
        t = self._table
        stmt = (
            update(t)
            .where(t.c.grabbed == 1, t.c.last_grabbed_at < cutoff)
            .values(grabbed=0)
        )
        with self._unit():
            reclaimed = self._conn.execute(stmt).rowcount

        if reclaimed > 0:
            logger.info(
                f"Released {reclaimed} timed out claims",
                extra={"table": self._table.name, "cutoff": cutoff.isoformat()}
            )

        return reclaimed

    def prune_retried(self, max_retries: int) -> int:
        """
        Delete every row claimed more than `max_retries` times.

        Claimed rows are deleted too.

        Returns:
            Number of deleted rows.
        """
        t = self._table
        with self._unit():
            pruned = self._conn.execute(delete(t).where(t.c.retried > max_retries)).rowcount

        if pruned > 0:
            logger.warning(
                f"Pruned {pruned} items over the retry limit",
                extra={"table": self._table.name, "max_retries": max_retries}
            )

        return pruned

    def get_item(self, item_id: str) -> ItemRow | None:
        """
        Get a row by id.

        Returns:
            The row or None if it does not exist.
        """
        t = self._table
        with self._unit():
            row = self._conn.execute(select(t).where(t.c.id == item_id)).one_or_none()
        if row is None:
            return None
        return ItemRow(
            id=row.id,
            ref_id=row.ref_id,
            version=row.version,
            last_grabbed_at=row.last_grabbed_at,
            grabbed=bool(row.grabbed),
            retried=row.retried,
        )

    def stats(self) -> QueueStats:
        """Count rows in total and by claim state."""
        t = self._table
        stmt = select(func.count(), func.coalesce(func.sum(t.c.grabbed), 0))
        with self._unit():
            total, claimed = self._conn.execute(stmt.select_from(t)).one()
        claimed = int(claimed)
        return QueueStats(
            outstanding=total,
            claimed=claimed,
            available=total - claimed,
        )
