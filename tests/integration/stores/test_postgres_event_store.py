"""Integration tests for PostgresEventStore.

Require a running PostgreSQL; see conftest for the DSN.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import asyncpg
import pytest

from chronicle.audit import (
    AuditAction,
    AuditHistoryService,
    AuditInterceptor,
    AuditRollbackError,
    AuditWriteError,
    EntityRegistry,
    current_unit_of_work,
)
from chronicle.audit.models import AuditEvent, EventKind
from chronicle.config.models.audit import AuditConfig
from chronicle.db.errors import ConflictError, ValidationError

pytestmark = pytest.mark.integration

BASE = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)


def make_event(
    *,
    entity_id: int = 1,
    event_kind: EventKind = EventKind.UPDATED,
    minutes: int = 0,
    initiator: str = "SYSTEM",
    payload: dict | None = None,
) -> AuditEvent:
    return AuditEvent(
        domain="HR",
        entity_type="EMPLOYEE",
        entity_id=entity_id,
        event_kind=event_kind,
        payload=payload if payload is not None else {"id": entity_id, "tags": ["a"]},
        summary="EMPLOYEE updated - no changes detected",
        entity_version=2,
        event_timestamp=BASE + timedelta(minutes=minutes),
        entry_timestamp=BASE + timedelta(minutes=minutes, seconds=1),
        initiator=initiator,
    )


class TestPostgresEventStore:
    """Round trips and queries against the audit_events table."""

    @pytest.mark.asyncio
    async def test_append_and_get(self, postgres_store):
        event = make_event(payload={"id": 1, "nested": {"ok": True}, "n": None})

        await postgres_store.append(event)
        stored = await postgres_store.get_event(event.id)

        assert stored == event
        assert await postgres_store.count() == 1

    @pytest.mark.asyncio
    async def test_get_nonexistent(self, postgres_store):
        assert await postgres_store.get_event(uuid4()) is None

    @pytest.mark.asyncio
    async def test_duplicate_id_raises_conflict(self, postgres_store):
        event = make_event()
        await postgres_store.append(event)

        with pytest.raises(ConflictError):
            await postgres_store.append(event)

    @pytest.mark.asyncio
    async def test_queries_most_recent_first(self, postgres_store):
        early = make_event(minutes=0, event_kind=EventKind.CREATED)
        late = make_event(minutes=10, initiator="jane")
        middle = make_event(minutes=5)
        other = make_event(entity_id=2, minutes=7, event_kind=EventKind.DELETED)
        for event in (early, late, middle, other):
            await postgres_store.append(event)

        assert [e.id for e in await postgres_store.list_by_entity_id(1)] == [
            late.id,
            middle.id,
            early.id,
        ]
        assert [e.id for e in await postgres_store.list_all(limit=2)] == [late.id, other.id]
        assert [e.id for e in await postgres_store.list_by_initiator("jane")] == [late.id]
        assert [
            e.id for e in await postgres_store.list_by_event_kind(EventKind.DELETED)
        ] == [other.id]
        assert len(await postgres_store.list_by_entity_type("EMPLOYEE")) == 4
        assert len(await postgres_store.list_by_entity_type_and_id("EMPLOYEE", 2)) == 1

    @pytest.mark.asyncio
    async def test_date_range_inclusive(self, postgres_store):
        events = [make_event(minutes=m) for m in (0, 5, 10)]
        for event in events:
            await postgres_store.append(event)

        result = await postgres_store.list_by_date_range(
            BASE + timedelta(minutes=5), BASE + timedelta(minutes=10)
        )

        assert [e.id for e in result] == [events[2].id, events[1].id]

    @pytest.mark.asyncio
    async def test_ties_broken_by_insertion(self, postgres_store):
        first = make_event(minutes=1)
        second = make_event(minutes=1)
        await postgres_store.append(first)
        await postgres_store.append(second)

        assert [e.id for e in await postgres_store.list_all()] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_table_is_append_only(self, postgres_store, postgres_pool):
        await postgres_store.append(make_event())

        async with postgres_pool.acquire() as conn:
            with pytest.raises(asyncpg.RaiseError):
                await conn.execute("DELETE FROM audit_events")
            with pytest.raises(asyncpg.RaiseError):
                await conn.execute("UPDATE audit_events SET summary = 'x'")

    @pytest.mark.asyncio
    async def test_rollback_discards_event(self, postgres_store):
        with pytest.raises(RuntimeError):
            async with postgres_store.unit_of_work():
                await postgres_store.append(make_event())
                raise RuntimeError("business failure")

        assert await postgres_store.count() == 0


class TestPostgresAuditPipeline:
    """Business writes and audit events share one transaction."""

    @pytest.fixture
    def registry(self):
        async def load_note(note_id):
            uow = current_unit_of_work()
            row = await uow.connection.fetchrow(
                "SELECT id, text, version FROM audit_test_notes WHERE id = $1", note_id
            )
            return dict(row) if row is not None else None

        registry = EntityRegistry()
        registry.register("NOTE", "DOCS", loader=load_note)
        return registry

    @pytest.fixture
    def interceptor(self, postgres_store, registry):
        return AuditInterceptor(
            postgres_store,
            registry,
            AuditConfig(append_max_attempts=1, append_retry_backoff_seconds=0.0),
        )

    @staticmethod
    async def create_note(note_id, text):
        conn = current_unit_of_work().connection
        row = await conn.fetchrow(
            "INSERT INTO audit_test_notes (id, text) VALUES ($1, $2) RETURNING id, text, version",
            note_id,
            text,
        )
        return dict(row)

    @staticmethod
    async def edit_note(note_id, text):
        conn = current_unit_of_work().connection
        row = await conn.fetchrow(
            """
            UPDATE audit_test_notes SET text = $2, version = version + 1
            WHERE id = $1 RETURNING id, text, version
            """,
            note_id,
            text,
        )
        return dict(row)

    @pytest.mark.asyncio
    async def test_create_and_update_history(self, interceptor, postgres_store):
        create = interceptor.wrap(self.create_note, action=AuditAction.CREATE, entity_type="NOTE")
        edit = interceptor.wrap(self.edit_note, action=AuditAction.UPDATE, entity_type="NOTE")

        await create(1, "draft")
        await edit(1, "final")

        entries = await AuditHistoryService(postgres_store).get_history(1)
        assert [e.event_kind for e in entries] == [EventKind.UPDATED, EventKind.CREATED]
        assert entries[0].version == 2
        assert entries[0].current_state == {"id": 1, "text": "final", "version": 2}
        assert entries[0].summary == (
            "NOTE updated: text (from 'draft' to 'final'), version (from '1' to '2')"
        )

    @pytest.mark.asyncio
    async def test_failed_audit_write_rolls_back_business_row(
        self, registry, interceptor, postgres_store, postgres_pool
    ):
        """An insert rejected by the database leaves no note row behind."""
        oversized = "N" * 150
        registry.register(oversized, "DOCS")
        create = interceptor.wrap(self.create_note, action=AuditAction.CREATE, entity_type=oversized)

        with pytest.raises(AuditWriteError) as exc_info:
            await create(5, "lost")

        assert exc_info.value.attempts == 1
        async with postgres_pool.acquire() as conn:
            assert await conn.fetchval("SELECT COUNT(*) FROM audit_test_notes") == 0
        assert await postgres_store.count() == 0
        assert isinstance(exc_info.value.cause, ValidationError)

    @pytest.mark.asyncio
    async def test_caught_audit_failure_rolls_back_outer_transaction(
        self, registry, interceptor, postgres_store, postgres_pool
    ):
        """The savepoint around the insert does not let the outer transaction commit."""
        oversized = "N" * 150
        registry.register(oversized, "DOCS")
        create = interceptor.wrap(self.create_note, action=AuditAction.CREATE, entity_type=oversized)

        with pytest.raises(AuditRollbackError):
            async with postgres_store.unit_of_work():
                try:
                    await create(6, "swallowed")
                except AuditWriteError:
                    pass

        async with postgres_pool.acquire() as conn:
            assert await conn.fetchval("SELECT COUNT(*) FROM audit_test_notes") == 0
        assert await postgres_store.count() == 0
