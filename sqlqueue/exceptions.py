class QueueError(Exception):
    """Base class for errors raised by the queue."""


class InvalidInput(QueueError, ValueError):
    """Raised when no reference is supplied to enqueue."""

    def __init__(self, message: str = "reference must not be None"):
        super().__init__(message)


class StorageFailure(QueueError):
    """Raised when the backing database fails an operation.

    The original SQLAlchemy error is available as ``__cause__``.
    """
