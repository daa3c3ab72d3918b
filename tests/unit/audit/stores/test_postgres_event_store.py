"""Tests for PostgresEventStore error mapping (no database needed)."""

from contextlib import asynccontextmanager

import asyncpg
import pytest

from chronicle.audit.models import AuditEvent, EventKind
from chronicle.audit.stores.postgres import PostgresEventStore
from chronicle.db.errors import ConnectionError, StoreError, ValidationError


class FakeTransaction:
    def __init__(self, connection: "FakeConnection") -> None:
        self.connection = connection

    async def start(self) -> None:
        pass

    async def commit(self) -> None:
        if self.connection.commit_error is not None:
            raise self.connection.commit_error
        self.connection.committed = True

    async def rollback(self) -> None:
        self.connection.rolled_back = True

    async def __aenter__(self) -> "FakeTransaction":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False


class FakeConnection:
    """Stands in for an asyncpg connection; raises the configured errors."""

    def __init__(
        self,
        execute_error: Exception | None = None,
        query_error: Exception | None = None,
        commit_error: Exception | None = None,
    ) -> None:
        self.execute_error = execute_error
        self.query_error = query_error
        self.commit_error = commit_error
        self.committed = False
        self.rolled_back = False

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self)

    async def execute(self, query: str, *args) -> str:
        if self.execute_error is not None:
            raise self.execute_error
        return "INSERT 0 1"

    async def fetchval(self, query: str, *args) -> int:
        if self.query_error is not None:
            raise self.query_error
        return 0

    async def fetch(self, query: str, *args) -> list:
        if self.query_error is not None:
            raise self.query_error
        return []


class FakePool:
    def __init__(self, connection: FakeConnection) -> None:
        self.connection = connection

    @asynccontextmanager
    async def acquire(self):
        yield self.connection


def make_event() -> AuditEvent:
    return AuditEvent(
        domain="HR",
        entity_type="EMPLOYEE",
        entity_id=1,
        event_kind=EventKind.CREATED,
        payload={"id": 1},
        summary="EMPLOYEE created",
    )


def make_store(**errors: Exception) -> tuple[PostgresEventStore, FakeConnection]:
    connection = FakeConnection(**errors)
    return PostgresEventStore(FakePool(connection)), connection


class TestAppendErrors:
    """Driver errors on insert map onto the store error hierarchy."""

    @pytest.mark.asyncio
    async def test_data_error_is_validation_error(self):
        store, connection = make_store(
            execute_error=asyncpg.exceptions.StringDataRightTruncationError("value too long")
        )

        with pytest.raises(ValidationError) as exc_info:
            await store.append(make_event())

        assert isinstance(exc_info.value.cause, asyncpg.exceptions.DataError)
        assert connection.rolled_back

    @pytest.mark.asyncio
    async def test_other_postgres_error_is_store_error(self):
        store, _ = make_store(
            execute_error=asyncpg.exceptions.UndefinedTableError("no audit_events")
        )

        with pytest.raises(StoreError) as exc_info:
            await store.append(make_event())

        assert not isinstance(exc_info.value, (ValidationError, ConnectionError))

    @pytest.mark.asyncio
    async def test_lost_connection_is_connection_error(self):
        store, _ = make_store(execute_error=ConnectionResetError("reset by peer"))

        with pytest.raises(ConnectionError):
            await store.append(make_event())


class TestCommitErrors:
    @pytest.mark.asyncio
    async def test_commit_failure_is_store_error_and_compensates(self):
        store, _ = make_store(
            commit_error=asyncpg.exceptions.SerializationError("could not serialize access")
        )
        calls = []

        with pytest.raises(StoreError) as exc_info:
            async with store.unit_of_work() as uow:
                uow.on_rollback(lambda: calls.append("compensated"))
                await store.append(make_event())

        assert isinstance(exc_info.value.cause, asyncpg.exceptions.SerializationError)
        assert calls == ["compensated"]

    @pytest.mark.asyncio
    async def test_commit_connection_loss_is_connection_error(self):
        store, _ = make_store(commit_error=ConnectionResetError("reset by peer"))

        with pytest.raises(ConnectionError):
            await store.append(make_event())

    @pytest.mark.asyncio
    async def test_successful_commit(self):
        store, connection = make_store()

        await store.append(make_event())

        assert connection.committed
        assert not connection.rolled_back


class TestQueryErrors:
    @pytest.mark.asyncio
    async def test_count_wraps_postgres_error(self):
        store, _ = make_store(query_error=asyncpg.exceptions.UndefinedTableError("missing"))

        with pytest.raises(StoreError):
            await store.count()

    @pytest.mark.asyncio
    async def test_list_wraps_postgres_error(self):
        store, _ = make_store(query_error=asyncpg.exceptions.UndefinedTableError("missing"))

        with pytest.raises(StoreError):
            await store.list_all()
