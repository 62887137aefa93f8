"""
Application constants.
Centralized location for all constant values used across the queue.
"""

from enum import StrEnum


class Outcome(StrEnum):
    """
    Result reported by a processor in take-execute-commit.

    - SUCCESS -> the claimed row is deleted (finalized)
    - FAILURE -> the claim is released and the row stays available
    """

    SUCCESS = "success"
    FAILURE = "failure"


# Column limits of the queue table
ITEM_ID_LENGTH = 36
REF_ID_MAX_LENGTH = 50

# Default values
DEFAULT_TABLE_NAME = "queue"
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_LOOK_AHEAD = 1

# Metrics names
METRIC_OUTSTANDING = "sqlqueue_outstanding_items"
METRIC_ITEMS_ENQUEUED = "sqlqueue_items_enqueued_total"
METRIC_ITEMS_TAKEN = "sqlqueue_items_taken_total"
METRIC_ITEMS_PROCESSED = "sqlqueue_items_processed_total"
METRIC_PROCESSING_DURATION = "sqlqueue_processing_duration_seconds"
METRIC_CLAIM_COLLISIONS = "sqlqueue_claim_collisions_total"
METRIC_EMPTY_POLLS = "sqlqueue_empty_polls_total"
METRIC_CLAIMS_RECLAIMED = "sqlqueue_claims_reclaimed_total"
METRIC_ITEMS_PRUNED = "sqlqueue_items_pruned_total"

# Trace span names
SPAN_ENQUEUE = "queue.enqueue"
SPAN_TAKE = "queue.take"
SPAN_TAKE_EXECUTE_COMMIT = "queue.take_execute_commit"
SPAN_PROCESS_ITEM = "queue.process_item"
