"""Derived read models over stored audit events."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from chronicle.audit.models.changes import FieldChange
from chronicle.audit.models.event import EventKind


class HistoryEntry(BaseModel):
    """One parsed audit event in an entity's history."""

    model_config = ConfigDict(frozen=True)

    entity_id: int | None = Field(..., description="Entity identifier")
    entity_type: str = Field(..., description="Entity type")
    event_kind: EventKind = Field(..., description="Kind of mutation")
    timestamp: datetime = Field(..., description="Event time")
    initiator: str = Field(..., description="Actor causing the mutation")
    version: int = Field(..., description="Entity version after the event")
    summary: str = Field(default="", description="Stored summary")
    changes: list[FieldChange] = Field(
        default_factory=list, description="Field changes, UPDATED events only"
    )
    current_state: dict[str, Any] | None = Field(
        default=None, description="Entity state as of this event"
    )


class FieldHistoryEntry(BaseModel):
    """One change of a single field."""

    model_config = ConfigDict(frozen=True)

    field_name: str
    old_value: Any = None
    new_value: Any = None
    timestamp: datetime
    initiator: str
    version: int
