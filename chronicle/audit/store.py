"""EventStore abstract interface and unit-of-work plumbing.

The store is append-only: it exposes ``append`` and read queries, never
update or delete. Appends always happen inside a unit of work so that the
audit record and the audited business mutation commit or roll back
together.
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Any
from uuid import UUID

from chronicle.audit.errors import AuditCommitError, AuditRollbackError
from chronicle.audit.models import AuditEvent, EventKind
from chronicle.observability.logging import get_logger

logger = get_logger(__name__)

RollbackHook = Callable[[], Any]

# Payload key under which backends keep a stored value that is not a JSON object
RAW_PAYLOAD_KEY = "_raw"


class UnitOfWork(ABC):
    """One transactional scope shared by a business mutation and its audit event.

    Business providers reach the active unit of work through
    ``current_unit_of_work()``. Backends with real transactions expose
    ``connection``; every backend accepts compensating ``on_rollback`` hooks
    for side effects outside the transaction.
    """

    def __init__(self, store: "EventStore") -> None:
        self.store = store
        self._rollback_hooks: list[RollbackHook] = []
        self._rollback_cause: AuditCommitError | None = None
        self._closed = False

    @property
    def connection(self) -> Any:
        """Transactional connection, or None for stores without one."""
        return None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def rollback_only(self) -> bool:
        return self._rollback_cause is not None

    def on_rollback(self, hook: RollbackHook) -> None:
        """Register a compensation run (in reverse order) if this scope rolls back."""
        self._rollback_hooks.append(hook)

    def set_rollback_only(self, cause: AuditCommitError) -> None:
        """Make the eventual commit roll back and raise instead.

        Set when an audit write inside this scope fails, including when the
        caller catches that error and leaves the block normally.
        """
        if self._rollback_cause is None:
            self._rollback_cause = cause

    @abstractmethod
    async def stage(self, event: AuditEvent) -> None:
        """Write ``event`` inside this scope; visible to readers after commit."""

    async def commit(self) -> None:
        """Commit staged work.

        Raises:
            AuditRollbackError: If the scope was marked rollback-only; it is
                rolled back instead
        """
        cause = self._rollback_cause
        if cause is not None:
            logger.warning("unit_of_work_rollback_only", error=str(cause))
            await self.rollback()
            raise AuditRollbackError(
                f"Unit of work rolled back after failed audit write: {cause}",
                entity_type=cause.entity_type,
                cause=cause,
            ) from cause

        try:
            await self._commit()
        except BaseException:
            self._closed = True
            await self._run_rollback_hooks()
            raise
        self._closed = True

    async def rollback(self) -> None:
        try:
            await self._rollback()
        finally:
            self._closed = True
            await self._run_rollback_hooks()

    async def _run_rollback_hooks(self) -> None:
        for hook in reversed(self._rollback_hooks):
            try:
                result = hook()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:  # noqa: BLE001 - remaining hooks must still run
                logger.error("rollback_hook_failed", hook=repr(hook), error=str(e))
        self._rollback_hooks.clear()

    @abstractmethod
    async def _commit(self) -> None: ...

    @abstractmethod
    async def _rollback(self) -> None: ...


_current_unit_of_work: ContextVar[UnitOfWork | None] = ContextVar(
    "current_unit_of_work", default=None
)


def current_unit_of_work() -> UnitOfWork | None:
    """Get the unit of work active in the current async task, if any."""
    uow = _current_unit_of_work.get()
    if uow is not None and uow.closed:
        return None
    return uow


class EventStore(ABC):
    """Abstract interface for audit event storage.

    All list queries return events most-recent-first, ordered by
    ``event_timestamp`` with insertion order breaking ties.
    """

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[UnitOfWork]:
        """Open a unit of work, or join the one already active for this store.

        Leaving the block normally commits. Any exception rolls back the
        staged events and runs the registered compensations, then
        propagates.
        """
        existing = current_unit_of_work()
        if existing is not None and existing.store is self:
            yield existing
            return

        uow = await self._begin()
        token = _current_unit_of_work.set(uow)
        try:
            yield uow
        except BaseException:
            await uow.rollback()
            raise
        else:
            await uow.commit()
        finally:
            _current_unit_of_work.reset(token)

    async def append(self, event: AuditEvent) -> UUID:
        """Append one event inside the current unit of work.

        Without an active unit of work the event gets a scope of its own.
        """
        async with self.unit_of_work() as uow:
            await uow.stage(event)
        logger.debug(
            "audit_event_staged",
            event_id=str(event.id),
            entity_type=event.entity_type,
            event_kind=event.event_kind.value,
        )
        return event.id

    @abstractmethod
    async def _begin(self) -> UnitOfWork:
        """Start a new backend-specific unit of work."""

    @abstractmethod
    async def get_event(self, event_id: UUID) -> AuditEvent | None:
        """Get one event by its ID."""

    @abstractmethod
    async def count(self) -> int:
        """Number of committed events."""

    @abstractmethod
    async def list_all(self, *, limit: int | None = None) -> list[AuditEvent]:
        """List every committed event."""

    @abstractmethod
    async def list_by_entity_id(
        self, entity_id: int, *, limit: int | None = None
    ) -> list[AuditEvent]:
        """List events for an entity id, across entity types."""

    @abstractmethod
    async def list_by_entity_type(
        self, entity_type: str, *, limit: int | None = None
    ) -> list[AuditEvent]:
        """List events for an entity type."""

    @abstractmethod
    async def list_by_event_kind(
        self, event_kind: EventKind, *, limit: int | None = None
    ) -> list[AuditEvent]:
        """List events of one kind."""

    @abstractmethod
    async def list_by_initiator(
        self, initiator: str, *, limit: int | None = None
    ) -> list[AuditEvent]:
        """List events caused by one initiator."""

    @abstractmethod
    async def list_by_date_range(
        self, start: datetime, end: datetime, *, limit: int | None = None
    ) -> list[AuditEvent]:
        """List events whose event_timestamp lies in [start, end]."""

    @abstractmethod
    async def list_by_entity_type_and_id(
        self, entity_type: str, entity_id: int, *, limit: int | None = None
    ) -> list[AuditEvent]:
        """List events for one entity of one type."""
