"""AuditEvent model."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class AuditAction(str, Enum):
    """Kind of mutating operation being intercepted."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class EventKind(str, Enum):
    """Kind of committed mutation recorded by an audit event."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"

    @classmethod
    def for_action(cls, action: AuditAction) -> "EventKind":
        return _KIND_BY_ACTION[action]


_KIND_BY_ACTION = {
    AuditAction.CREATE: EventKind.CREATED,
    AuditAction.UPDATE: EventKind.UPDATED,
    AuditAction.DELETE: EventKind.DELETED,
}


class AuditEvent(BaseModel):
    """Immutable record of one committed entity mutation.

    CREATED and DELETED payloads hold the full serialized entity. UPDATED
    payloads hold ``oldValue``, ``newValue`` and the ``changes`` map.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    domain: str = Field(..., description="Business domain, e.g. HR")
    entity_type: str = Field(..., description="Entity type, e.g. EMPLOYEE")
    entity_id: int | None = Field(
        default=None, description="Entity identifier, None if extraction failed"
    )
    event_kind: EventKind = Field(..., description="CREATED, UPDATED or DELETED")
    payload: dict[str, Any] = Field(..., description="Serialized event document")
    summary: str = Field(..., description="Human-readable description")
    entity_version: int = Field(
        default=1, description="Entity version immediately after this commit"
    )
    event_timestamp: datetime = Field(
        default_factory=utc_now, description="When the mutation happened"
    )
    entry_timestamp: datetime = Field(
        default_factory=utc_now, description="When the record was written"
    )
    initiator: str = Field(default="SYSTEM", description="Actor causing the mutation")
