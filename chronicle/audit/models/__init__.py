"""Audit domain models.

- AuditEvent: the immutable stored record
- ChangeSet / FieldChange: field-level diffs
- HistoryEntry / FieldHistoryEntry: parsed read models
"""

from chronicle.audit.models.changes import ChangeSet, FieldChange
from chronicle.audit.models.event import AuditAction, AuditEvent, EventKind, utc_now
from chronicle.audit.models.history import FieldHistoryEntry, HistoryEntry

__all__ = [
    "AuditAction",
    "AuditEvent",
    "ChangeSet",
    "EventKind",
    "FieldChange",
    "FieldHistoryEntry",
    "HistoryEntry",
    "utc_now",
]
