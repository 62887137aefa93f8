"""
SQLAlchemy table definition for a queue.
"""

from sqlalchemy import (
    CHAR,
    BigInteger,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    text,
)

from sqlqueue.constants import ITEM_ID_LENGTH, REF_ID_MAX_LENGTH


def build_queue_table(metadata: MetaData, table_name: str) -> Table:
    """
    Declare the queue table under the given name.

    One row per queued reference. The claim protocol relies on:
    - version: incremented by every successful claim, the CAS discriminant
    - grabbed: 1 while a claim is outstanding, 0 otherwise
    - retried: number of claims ever made, never decreases
    - last_grabbed_at: time of the latest claim, compared against the timeout

    The name is rendered as given, without quoting, so it must already be a
    valid identifier for the target database.

    Args:
        metadata: The MetaData collection to attach the table to.
        table_name: Name of the backing table.

    Returns:
        The Table object.
    """
    return Table(
        table_name,
        metadata,
        Column("id", CHAR(ITEM_ID_LENGTH), primary_key=True),
        Column("ref_id", String(REF_ID_MAX_LENGTH), nullable=False),
        Column("version", BigInteger, nullable=False, server_default=text("1")),
        Column("last_grabbed_at", DateTime(timezone=True), nullable=True),
        Column("grabbed", Integer, nullable=False, server_default=text("0")),
        Column("retried", Integer, nullable=False, server_default=text("0")),
        quote=False,
    )
