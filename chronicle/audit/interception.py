"""Interception layer: audit capture around mutating operations.

A wrapped operation runs inside a unit of work. For UPDATE and DELETE the
current state is loaded and snapshotted first; after the operation returns,
exactly one AuditEvent is built and appended. If the operation raises,
nothing is written. If the audit write fails, the unit of work rolls back
and an ``AuditCommitError`` is raised so callers can tell the two apart.

Usage:
    registry = EntityRegistry()
    registry.register("EMPLOYEE", "HR", loader=service.get_employee)
    interceptor = AuditInterceptor(store, registry)

    update_employee = interceptor.wrap(
        service.update_employee,
        action=AuditAction.UPDATE,
        entity_type="EMPLOYEE",
    )
    with acting_as("jane.admin"):
        await update_employee(42, changes)
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import time
from collections.abc import Awaitable, Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from chronicle.audit.diff import diff
from chronicle.audit.entity import entity_fields, field_value, serialize_entity
from chronicle.audit.errors import (
    AuditCommitError,
    AuditSerializationError,
    AuditWriteError,
    RegistrationError,
)
from chronicle.audit.models import (
    AuditAction,
    AuditEvent,
    ChangeSet,
    EventKind,
    utc_now,
)
from chronicle.audit.registry import EntityRegistration, EntityRegistry
from chronicle.audit.snapshot import Snapshot
from chronicle.audit.summary import summarize
from chronicle.config.models.audit import AuditConfig
from chronicle.db.errors import ConnectionError, NotFoundError, StoreError
from chronicle.observability.logging import bound_audit_context, get_logger
from chronicle.observability.metrics import (
    AUDIT_APPEND_RETRIES,
    AUDIT_COMMIT_FAILURES,
    AUDIT_EVENTS_WRITTEN,
    AUDIT_WRITE_LATENCY,
)

if TYPE_CHECKING:
    from chronicle.audit.store import EventStore
    from chronicle.config.settings import Settings

logger = get_logger(__name__)

_acting_initiator: ContextVar[str | None] = ContextVar("acting_initiator", default=None)


@contextmanager
def acting_as(initiator: str) -> Iterator[None]:
    """Record ``initiator`` on every audit event written in this block."""
    token = _acting_initiator.set(initiator)
    try:
        yield
    finally:
        _acting_initiator.reset(token)


@dataclass(frozen=True)
class OperationSpec:
    """Declared identity of a wrapped operation."""

    action: AuditAction
    domain: str
    registration: EntityRegistration

    @property
    def entity_type(self) -> str:
        return self.registration.entity_type


@dataclass
class InvocationContext:
    """State bridging the before and after phases of one call.

    Created per call and never shared; ``release`` drops the snapshot.
    """

    spec: OperationSpec
    args: tuple[Any, ...]
    kwargs: dict[str, Any]
    entity_id: Any = None
    snapshot: Snapshot | None = None
    event_timestamp: datetime | None = None
    started: float = field(default_factory=time.perf_counter)

    @property
    def pre_state(self) -> Any:
        return self.snapshot.state if self.snapshot is not None else None

    def release(self) -> None:
        if self.snapshot is not None:
            self.snapshot.release()
            self.snapshot = None


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _coerce_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (int, str, float))


class AuditInterceptor:
    """Wraps mutating operations so each successful call emits one AuditEvent."""

    def __init__(
        self,
        store: EventStore,
        registry: EntityRegistry,
        config: AuditConfig | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        record_metrics: bool = True,
    ) -> None:
        self._store = store
        self._registry = registry
        self._config = config or AuditConfig()
        self._clock = clock
        self._record_metrics = record_metrics
        self._metadata_fields = frozenset(self._config.metadata_fields)

    @classmethod
    def from_settings(
        cls, store: EventStore, registry: EntityRegistry, settings: Settings
    ) -> AuditInterceptor:
        return cls(
            store,
            registry,
            settings.audit,
            record_metrics=settings.observability.metrics.enabled,
        )

    @property
    def store(self) -> EventStore:
        return self._store

    def wrap(
        self,
        operation: Callable[..., Any],
        *,
        action: AuditAction,
        entity_type: str,
        domain: str | None = None,
    ) -> Callable[..., Awaitable[Any]]:
        """Return an audited coroutine function around ``operation``.

        Raises:
            RegistrationError: If the entity type is unknown, or an
                UPDATE/DELETE operation is wrapped for a type with no loader
        """
        registration = self._registry.get(entity_type)
        if action in (AuditAction.UPDATE, AuditAction.DELETE) and registration.loader is None:
            raise RegistrationError(
                f"{action.value} on {entity_type!r} requires a current-state loader"
            )
        spec = OperationSpec(
            action=action,
            domain=domain or registration.domain or self._config.default_domain,
            registration=registration,
        )

        @functools.wraps(operation)
        async def audited(*args: Any, **kwargs: Any) -> Any:
            return await self._invoke(spec, operation, args, kwargs)

        audited.__audit_spec__ = spec  # type: ignore[attr-defined]
        return audited

    def auditable(
        self,
        action: AuditAction,
        entity_type: str,
        domain: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Awaitable[Any]]]:
        """Decorator form of ``wrap``."""

        def decorator(operation: Callable[..., Any]) -> Callable[..., Awaitable[Any]]:
            return self.wrap(operation, action=action, entity_type=entity_type, domain=domain)

        return decorator

    async def _invoke(
        self,
        spec: OperationSpec,
        operation: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        ctx = InvocationContext(spec=spec, args=args, kwargs=kwargs)
        with bound_audit_context(entity_type=spec.entity_type, action=spec.action.value):
            try:
                async with self._store.unit_of_work() as uow:
                    if spec.action is not AuditAction.CREATE:
                        ctx.entity_id = self._target_id(spec.registration, args, kwargs)
                        ctx.snapshot = await self._capture(spec.registration, ctx.entity_id)

                    result = await _resolve(operation(*args, **kwargs))
                    ctx.event_timestamp = self._clock()
                    try:
                        await self._record(ctx, result)
                    except AuditCommitError as e:
                        uow.set_rollback_only(e)
                        raise
                return result
            finally:
                ctx.release()

    def _target_id(
        self,
        registration: EntityRegistration,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
    ) -> Any:
        candidate = kwargs.get("entity_id", args[0] if args else None)
        if not _is_scalar(candidate):
            candidate = field_value(candidate, registration.id_field)
        return candidate

    async def _capture(self, registration: EntityRegistration, entity_id: Any) -> Snapshot | None:
        """Load and snapshot the current state; a missing entity skips the snapshot."""
        if entity_id is None:
            logger.warning("snapshot_skipped_no_entity_id")
            return None
        current = await self._load(registration, entity_id)
        if current is None:
            logger.info("snapshot_skipped_not_found", entity_id=str(entity_id))
            return None
        return Snapshot.capture(
            registration.entity_type,
            entity_id,
            current,
            record_metrics=self._record_metrics,
        )

    async def _load(self, registration: EntityRegistration, entity_id: Any) -> Any:
        try:
            return await _resolve(registration.loader(entity_id))
        except NotFoundError:
            return None

    async def _record(self, ctx: InvocationContext, result: Any) -> None:
        spec = ctx.spec
        registration = spec.registration
        kind = EventKind.for_action(spec.action)
        changes: ChangeSet | None = None

        try:
            if spec.action is AuditAction.CREATE:
                post_state = self._require_state(result, spec)
                payload = serialize_entity(post_state)
                entity_id = field_value(post_state, registration.id_field)
            elif spec.action is AuditAction.UPDATE:
                post_state = result
                if post_state is None:
                    post_state = await self._load(registration, ctx.entity_id)
                post_state = self._require_state(post_state, spec)
                old_fields = entity_fields(ctx.pre_state) if ctx.pre_state is not None else None
                new_fields = entity_fields(post_state)
                changes = diff(old_fields, new_fields, self._metadata_for(registration))
                payload = {
                    "oldValue": dict(old_fields) if old_fields is not None else None,
                    "newValue": dict(new_fields),
                    "changes": changes.to_payload(),
                }
                entity_id = ctx.entity_id
                if _coerce_id(entity_id) is None:
                    entity_id = field_value(post_state, registration.id_field)
            else:
                post_state = ctx.pre_state
                entity_id = ctx.entity_id
                if post_state is None:
                    logger.warning("delete_without_snapshot", entity_id=str(entity_id))
                    payload = {registration.id_field: _coerce_id(entity_id)}
                else:
                    payload = serialize_entity(post_state)
        except AuditSerializationError as e:
            self._count_failure(spec.entity_type, "serialization")
            logger.error("audit_serialization_failed", error=str(e))
            raise AuditSerializationError(
                f"Failed to serialize {spec.entity_type} for audit: {e}",
                entity_type=spec.entity_type,
                cause=e.cause or e,
            ) from e

        coerced_id = _coerce_id(entity_id)
        if coerced_id is None:
            logger.warning("entity_id_extraction_failed", raw_entity_id=repr(entity_id))

        event = AuditEvent(
            domain=spec.domain,
            entity_type=spec.entity_type,
            entity_id=coerced_id,
            event_kind=kind,
            payload=payload,
            summary=summarize(kind, spec.entity_type, changes),
            entity_version=self._version_of(registration, post_state),
            event_timestamp=ctx.event_timestamp or self._clock(),
            entry_timestamp=self._clock(),
            initiator=self._initiator(registration, ctx.args, ctx.kwargs, result),
        )
        await self._append(event)

        if self._record_metrics:
            AUDIT_EVENTS_WRITTEN.labels(
                domain=event.domain,
                entity_type=event.entity_type,
                event_kind=event.event_kind.value,
            ).inc()
            AUDIT_WRITE_LATENCY.labels(
                entity_type=event.entity_type,
                event_kind=event.event_kind.value,
            ).observe(time.perf_counter() - ctx.started)
        logger.info(
            "audit_event_recorded",
            event_id=str(event.id),
            entity_id=event.entity_id,
            event_kind=event.event_kind.value,
            entity_version=event.entity_version,
        )

    def _require_state(self, state: Any, spec: OperationSpec) -> Any:
        if state is None:
            raise AuditSerializationError(
                f"{spec.action.value} on {spec.entity_type} produced no state to audit",
                entity_type=spec.entity_type,
            )
        return state

    def _metadata_for(self, registration: EntityRegistration) -> frozenset[str]:
        if registration.metadata_fields is not None:
            return registration.metadata_fields
        return self._metadata_fields

    def _version_of(self, registration: EntityRegistration, state: Any) -> int:
        """Entity version immediately after the commit; 1 when untracked."""
        if state is None or registration.version_field is None:
            return 1
        version = _coerce_id(field_value(state, registration.version_field))
        return version if version is not None else 1

    def _initiator(
        self,
        registration: EntityRegistration,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
        result: Any,
    ) -> str:
        explicit = _acting_initiator.get()
        if explicit:
            return explicit

        if registration.initiator_field:
            candidates = [*args, *kwargs.values(), result]
            for candidate in candidates:
                if _is_scalar(candidate):
                    continue
                value = field_value(candidate, registration.initiator_field)
                if isinstance(value, str) and value:
                    return value

        return self._config.default_initiator

    async def _append(self, event: AuditEvent) -> None:
        """Append with bounded retries on transient store failures."""
        attempts = self._config.append_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                await self._store.append(event)
                return
            except ConnectionError as e:
                if attempt == attempts:
                    self._fail_write(event, e, attempt)
                if self._record_metrics:
                    AUDIT_APPEND_RETRIES.labels(entity_type=event.entity_type).inc()
                logger.warning(
                    "audit_append_retry",
                    event_id=str(event.id),
                    attempt=attempt,
                    error=str(e),
                )
                await asyncio.sleep(self._config.append_retry_backoff_seconds * attempt)
            except StoreError as e:
                self._fail_write(event, e, attempt)

    def _fail_write(self, event: AuditEvent, error: Exception, attempts: int) -> None:
        self._count_failure(event.entity_type, "write")
        logger.error(
            "audit_write_failed",
            event_id=str(event.id),
            attempts=attempts,
            error=str(error),
        )
        raise AuditWriteError(
            f"Failed to append audit event for {event.entity_type} after {attempts} attempt(s)",
            entity_type=event.entity_type,
            attempts=attempts,
            cause=error,
        ) from error

    def _count_failure(self, entity_type: str, reason: str) -> None:
        if self._record_metrics:
            AUDIT_COMMIT_FAILURES.labels(entity_type=entity_type, reason=reason).inc()
