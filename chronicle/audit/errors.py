"""Audit error hierarchy.

``AuditCommitError`` marks failures of the audit write itself: the business
operation ran, but its audit record could not be committed, so the
enclosing unit of work was rolled back. Business exceptions raised by a
wrapped operation are never wrapped in these types.
"""


class AuditError(Exception):
    """Base exception for all audit errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class RegistrationError(AuditError):
    """Raised when an entity type or operation is registered incorrectly.

    Examples:
        - UPDATE/DELETE operation for an entity type with no loader
        - Duplicate registration of an entity type
    """

    pass


class AuditCommitError(AuditError):
    """The business operation succeeded but its audit record was not committed."""

    def __init__(
        self,
        message: str,
        entity_type: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.entity_type = entity_type


class AuditSerializationError(AuditCommitError):
    """Raised when an entity cannot be turned into an audit payload."""

    pass


class AuditWriteError(AuditCommitError):
    """Raised when appending to the event store fails after all retries."""

    def __init__(
        self,
        message: str,
        entity_type: str,
        attempts: int,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, entity_type=entity_type, cause=cause)
        self.attempts = attempts


class AuditRollbackError(AuditCommitError):
    """Raised at commit of a unit of work whose audit write already failed.

    The unit of work was rolled back instead of committed; ``cause`` is the
    original audit failure.
    """

    pass
