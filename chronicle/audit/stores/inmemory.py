"""In-memory implementation of EventStore."""

import itertools
from datetime import datetime
from uuid import UUID

from chronicle.audit.models import AuditEvent, EventKind
from chronicle.audit.store import EventStore, UnitOfWork
from chronicle.db.errors import ConflictError


class InMemoryUnitOfWork(UnitOfWork):
    """Buffers staged events until commit; rollback discards them."""

    def __init__(self, store: "InMemoryEventStore") -> None:
        super().__init__(store)
        self._store = store
        self._staged: list[AuditEvent] = []

    async def stage(self, event: AuditEvent) -> None:
        if self._store.contains(event.id) or any(e.id == event.id for e in self._staged):
            raise ConflictError(f"Audit event {event.id} already exists")
        self._staged.append(event)

    async def _commit(self) -> None:
        self._store._commit(self._staged)
        self._staged = []

    async def _rollback(self) -> None:
        self._staged = []


class InMemoryEventStore(EventStore):
    """In-memory EventStore for testing and development.

    Linear scans for queries. Not suitable for production use. Events are
    copied on the way in and out.
    """

    def __init__(self) -> None:
        self._events: list[tuple[int, AuditEvent]] = []
        self._ids: set[UUID] = set()
        self._sequence = itertools.count(1)

    def contains(self, event_id: UUID) -> bool:
        return event_id in self._ids

    def _commit(self, events: list[AuditEvent]) -> None:
        for event in events:
            self._events.append((next(self._sequence), event.model_copy(deep=True)))
            self._ids.add(event.id)

    async def _begin(self) -> UnitOfWork:
        return InMemoryUnitOfWork(self)

    def _select(self, predicate, limit: int | None) -> list[AuditEvent]:
        rows = [row for row in self._events if predicate(row[1])]
        # Most recent first; insertion sequence breaks timestamp ties
        rows.sort(key=lambda row: (row[1].event_timestamp, row[0]), reverse=True)
        if limit is not None:
            rows = rows[:limit]
        return [event.model_copy(deep=True) for _, event in rows]

    async def get_event(self, event_id: UUID) -> AuditEvent | None:
        for _, event in self._events:
            if event.id == event_id:
                return event.model_copy(deep=True)
        return None

    async def count(self) -> int:
        return len(self._events)

    async def list_all(self, *, limit: int | None = None) -> list[AuditEvent]:
        return self._select(lambda e: True, limit)

    async def list_by_entity_id(
        self, entity_id: int, *, limit: int | None = None
    ) -> list[AuditEvent]:
        return self._select(lambda e: e.entity_id == entity_id, limit)

    async def list_by_entity_type(
        self, entity_type: str, *, limit: int | None = None
    ) -> list[AuditEvent]:
        return self._select(lambda e: e.entity_type == entity_type, limit)

    async def list_by_event_kind(
        self, event_kind: EventKind, *, limit: int | None = None
    ) -> list[AuditEvent]:
        return self._select(lambda e: e.event_kind == event_kind, limit)

    async def list_by_initiator(
        self, initiator: str, *, limit: int | None = None
    ) -> list[AuditEvent]:
        return self._select(lambda e: e.initiator == initiator, limit)

    async def list_by_date_range(
        self, start: datetime, end: datetime, *, limit: int | None = None
    ) -> list[AuditEvent]:
        return self._select(lambda e: start <= e.event_timestamp <= end, limit)

    async def list_by_entity_type_and_id(
        self, entity_type: str, entity_id: int, *, limit: int | None = None
    ) -> list[AuditEvent]:
        return self._select(
            lambda e: e.entity_type == entity_type and e.entity_id == entity_id,
            limit,
        )
