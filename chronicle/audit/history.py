"""History/query API: parsed read models over stored audit events."""

from datetime import datetime
from typing import Any

from chronicle.audit.models import (
    AuditEvent,
    EventKind,
    FieldChange,
    FieldHistoryEntry,
    HistoryEntry,
)
from chronicle.audit.store import RAW_PAYLOAD_KEY, EventStore
from chronicle.observability.logging import get_logger

logger = get_logger(__name__)


class MalformedPayloadError(ValueError):
    """A stored payload does not have the expected structure."""


def _decode_changes(payload: dict[str, Any]) -> list[FieldChange]:
    changes = payload.get("changes")
    if changes is None:
        return []
    if not isinstance(changes, dict):
        raise MalformedPayloadError("'changes' is not an object")

    decoded = []
    for field_name, change in changes.items():
        if not isinstance(change, dict):
            raise MalformedPayloadError(f"change for {field_name!r} is not an object")
        decoded.append(FieldChange.from_stored(field_name, change))
    return decoded


def _current_state(event: AuditEvent) -> dict[str, Any] | None:
    if RAW_PAYLOAD_KEY in event.payload:
        raise MalformedPayloadError("stored payload is not a JSON object")
    if event.event_kind is EventKind.UPDATED:
        state = event.payload.get("newValue")
    else:
        state = event.payload
    if state is not None and not isinstance(state, dict):
        raise MalformedPayloadError("entity state is not an object")
    return state


class AuditHistoryService:
    """Derived, read-only views over the raw event feed.

    Entries come back in the store's order: most recent first. A stored
    payload that cannot be parsed degrades to an entry with no changes
    and no state; the rest of the result is unaffected.
    """

    def __init__(self, store: EventStore) -> None:
        self._store = store

    async def get_history(self, entity_id: int) -> list[HistoryEntry]:
        """Parsed history of every event for ``entity_id``."""
        events = await self._store.list_by_entity_id(entity_id)
        return [self._to_entry(event) for event in events]

    async def get_entity_history(self, entity_type: str, entity_id: int) -> list[HistoryEntry]:
        """Parsed history scoped to one entity type."""
        events = await self._store.list_by_entity_type_and_id(entity_type, entity_id)
        return [self._to_entry(event) for event in events]

    async def get_field_history(
        self, entity_id: int, field_name: str
    ) -> list[FieldHistoryEntry]:
        """Changes of one field, one entry per UPDATED event that touched it."""
        results = []
        for entry in await self.get_history(entity_id):
            if entry.event_kind is not EventKind.UPDATED:
                continue
            for change in entry.changes:
                if change.field_name != field_name:
                    continue
                results.append(
                    FieldHistoryEntry(
                        field_name=field_name,
                        old_value=change.old_value,
                        new_value=change.new_value,
                        timestamp=entry.timestamp,
                        initiator=entry.initiator,
                        version=entry.version,
                    )
                )
                break
        return results

    async def get_state_at(self, entity_id: int, at: datetime) -> dict[str, Any] | None:
        """Reconstructed entity state as of ``at``.

        Returns None if the entity did not exist yet or had been deleted.
        """
        for entry in await self.get_history(entity_id):
            if entry.timestamp > at:
                continue
            if entry.event_kind is EventKind.DELETED:
                return None
            return entry.current_state
        return None

    def _to_entry(self, event: AuditEvent) -> HistoryEntry:
        changes: list[FieldChange] = []
        state: dict[str, Any] | None = None
        try:
            if event.event_kind is EventKind.UPDATED:
                changes = _decode_changes(event.payload)
            state = _current_state(event)
        except MalformedPayloadError as e:
            logger.warning(
                "malformed_audit_payload",
                event_id=str(event.id),
                event_kind=event.event_kind.value,
                error=str(e),
            )
            changes, state = [], None

        return HistoryEntry(
            entity_id=event.entity_id,
            entity_type=event.entity_type,
            event_kind=event.event_kind,
            timestamp=event.event_timestamp,
            initiator=event.initiator,
            version=event.entity_version,
            summary=event.summary,
            changes=changes,
            current_state=state,
        )
