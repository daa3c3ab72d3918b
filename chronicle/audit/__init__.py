"""Audit capture pipeline.

Interception, snapshotting, field-level diffs, summaries, append-only
event persistence and history queries for mutable domain entities.
"""

from chronicle.audit.diff import diff, values_equal
from chronicle.audit.entity import entity_fields, serialize_entity
from chronicle.audit.errors import (
    AuditCommitError,
    AuditError,
    AuditRollbackError,
    AuditSerializationError,
    AuditWriteError,
    RegistrationError,
)
from chronicle.audit.history import AuditHistoryService
from chronicle.audit.interception import AuditInterceptor, acting_as
from chronicle.audit.models import (
    AuditAction,
    AuditEvent,
    ChangeSet,
    EventKind,
    FieldChange,
    FieldHistoryEntry,
    HistoryEntry,
)
from chronicle.audit.registry import EntityRegistration, EntityRegistry
from chronicle.audit.snapshot import Snapshot, copy_entity
from chronicle.audit.store import EventStore, UnitOfWork, current_unit_of_work
from chronicle.audit.summary import summarize

__all__ = [
    "AuditAction",
    "AuditCommitError",
    "AuditError",
    "AuditEvent",
    "AuditHistoryService",
    "AuditInterceptor",
    "AuditRollbackError",
    "AuditSerializationError",
    "AuditWriteError",
    "ChangeSet",
    "EntityRegistration",
    "EntityRegistry",
    "EventKind",
    "EventStore",
    "FieldChange",
    "FieldHistoryEntry",
    "HistoryEntry",
    "RegistrationError",
    "Snapshot",
    "UnitOfWork",
    "acting_as",
    "copy_entity",
    "current_unit_of_work",
    "diff",
    "entity_fields",
    "serialize_entity",
    "summarize",
]
