"""PostgreSQL implementation of EventStore.

Uses asyncpg. A unit of work holds one pooled connection with an open
transaction; business providers that run their writes on
``current_unit_of_work().connection`` commit or roll back together with
the audit event.
"""

import json
from contextlib import AsyncExitStack
from datetime import datetime
from typing import Any
from uuid import UUID

import asyncpg

from chronicle.audit.models import AuditEvent, EventKind
from chronicle.audit.store import RAW_PAYLOAD_KEY, EventStore, UnitOfWork
from chronicle.db.errors import ConflictError, ConnectionError, StoreError, ValidationError
from chronicle.db.pool import TRANSIENT_ERRORS, PostgresPool
from chronicle.observability.logging import get_logger

logger = get_logger(__name__)

_COLUMNS = """
    id, domain, entity_type, entity_id, event_kind, payload, summary,
    entity_version, event_timestamp, entry_timestamp, initiator
"""

_ORDER = "ORDER BY event_timestamp DESC, seq DESC"


class PostgresUnitOfWork(UnitOfWork):
    """Transaction on a single pooled connection."""

    def __init__(
        self,
        store: "PostgresEventStore",
        stack: AsyncExitStack,
        connection: asyncpg.Connection,
        transaction: Any,
    ) -> None:
        super().__init__(store)
        self._stack = stack
        self._connection = connection
        self._transaction = transaction

    @property
    def connection(self) -> asyncpg.Connection:
        return self._connection

    async def stage(self, event: AuditEvent) -> None:
        try:
            # Savepoint: a failed insert must not poison the business transaction
            async with self._connection.transaction():
                await self._connection.execute(
                    f"""
                    INSERT INTO audit_events ({_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                    """,
                    event.id,
                    event.domain,
                    event.entity_type,
                    event.entity_id,
                    event.event_kind.value,
                    json.dumps(event.payload),
                    event.summary,
                    event.entity_version,
                    event.event_timestamp,
                    event.entry_timestamp,
                    event.initiator,
                )
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(f"Audit event {event.id} already exists", cause=e) from e
        except TRANSIENT_ERRORS as e:
            logger.error("postgres_append_error", event_id=str(event.id), error=str(e))
            raise ConnectionError(f"Failed to append audit event: {e}", cause=e) from e
        except asyncpg.exceptions.DataError as e:
            logger.error("postgres_append_rejected", event_id=str(event.id), error=str(e))
            raise ValidationError(f"Audit event rejected by the schema: {e}", cause=e) from e
        except asyncpg.PostgresError as e:
            logger.error("postgres_append_error", event_id=str(event.id), error=str(e))
            raise StoreError(f"Failed to append audit event: {e}", cause=e) from e

    async def _commit(self) -> None:
        try:
            await self._transaction.commit()
        except TRANSIENT_ERRORS as e:
            logger.error("postgres_commit_error", error=str(e))
            raise ConnectionError(f"Failed to commit unit of work: {e}", cause=e) from e
        except asyncpg.PostgresError as e:
            logger.error("postgres_commit_error", error=str(e))
            raise StoreError(f"Failed to commit unit of work: {e}", cause=e) from e
        finally:
            await self._stack.aclose()

    async def _rollback(self) -> None:
        try:
            await self._transaction.rollback()
        finally:
            await self._stack.aclose()


class PostgresEventStore(EventStore):
    """PostgreSQL EventStore backed by the ``audit_events`` table."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def _begin(self) -> UnitOfWork:
        stack = AsyncExitStack()
        try:
            connection = await stack.enter_async_context(self._pool.acquire())
            transaction = connection.transaction()
            await transaction.start()
        except BaseException:
            await stack.aclose()
            raise
        return PostgresUnitOfWork(self, stack, connection, transaction)

    async def _fetch(self, where: str, *params: Any, limit: int | None) -> list[AuditEvent]:
        query = f"SELECT {_COLUMNS} FROM audit_events"
        if where:
            query += f" WHERE {where}"
        query += f" {_ORDER}"
        args = list(params)
        if limit is not None:
            args.append(limit)
            query += f" LIMIT ${len(args)}"

        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, *args)
        except asyncpg.PostgresError as e:
            logger.error("postgres_query_error", where=where, error=str(e))
            raise StoreError(f"Failed to query audit events: {e}", cause=e) from e
        return [self._row_to_event(row) for row in rows]

    async def get_event(self, event_id: UUID) -> AuditEvent | None:
        events = await self._fetch("id = $1", event_id, limit=1)
        return events[0] if events else None

    async def count(self) -> int:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchval("SELECT COUNT(*) FROM audit_events")
        except asyncpg.PostgresError as e:
            logger.error("postgres_query_error", query="count", error=str(e))
            raise StoreError(f"Failed to count audit events: {e}", cause=e) from e

    async def list_all(self, *, limit: int | None = None) -> list[AuditEvent]:
        return await self._fetch("", limit=limit)

    async def list_by_entity_id(
        self, entity_id: int, *, limit: int | None = None
    ) -> list[AuditEvent]:
        return await self._fetch("entity_id = $1", entity_id, limit=limit)

    async def list_by_entity_type(
        self, entity_type: str, *, limit: int | None = None
    ) -> list[AuditEvent]:
        return await self._fetch("entity_type = $1", entity_type, limit=limit)

    async def list_by_event_kind(
        self, event_kind: EventKind, *, limit: int | None = None
    ) -> list[AuditEvent]:
        return await self._fetch("event_kind = $1", event_kind.value, limit=limit)

    async def list_by_initiator(
        self, initiator: str, *, limit: int | None = None
    ) -> list[AuditEvent]:
        return await self._fetch("initiator = $1", initiator, limit=limit)

    async def list_by_date_range(
        self, start: datetime, end: datetime, *, limit: int | None = None
    ) -> list[AuditEvent]:
        return await self._fetch(
            "event_timestamp BETWEEN $1 AND $2", start, end, limit=limit
        )

    async def list_by_entity_type_and_id(
        self, entity_type: str, entity_id: int, *, limit: int | None = None
    ) -> list[AuditEvent]:
        return await self._fetch(
            "entity_type = $1 AND entity_id = $2", entity_type, entity_id, limit=limit
        )

    def _row_to_event(self, row) -> AuditEvent:
        """Convert a database row to an AuditEvent.

        The payload is decoded leniently: a value that is not a JSON object
        is kept under RAW_PAYLOAD_KEY so history parsing can report it as malformed
        instead of failing the query here.
        """
        payload = row["payload"]
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError:
                payload = {RAW_PAYLOAD_KEY: row["payload"]}
        if not isinstance(payload, dict):
            payload = {RAW_PAYLOAD_KEY: payload}

        return AuditEvent(
            id=row["id"],
            domain=row["domain"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            event_kind=EventKind(row["event_kind"]),
            payload=payload,
            summary=row["summary"],
            entity_version=row["entity_version"],
            event_timestamp=row["event_timestamp"],
            entry_timestamp=row["entry_timestamp"],
            initiator=row["initiator"],
        )
