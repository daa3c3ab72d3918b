"""Store error hierarchy for event store backends.

Backends wrap driver-specific exceptions in one of these so the audit
pipeline can tell transient failures from permanent ones.
"""


class StoreError(Exception):
    """Base exception for all store errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):
    """Raised when the store cannot be reached.

    Treated as transient: the audit write path retries appends that fail
    with this error.
    """

    pass


class NotFoundError(StoreError):
    """Raised when a specific entity lookup fails.

    Not raised for empty query results.
    """

    pass


class ConflictError(StoreError):
    """Raised on unique constraint violation, e.g. a duplicate event id."""

    pass


class ValidationError(StoreError):
    """Raised when stored or submitted data does not fit the schema."""

    pass
