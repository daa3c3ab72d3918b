"""Bootstrap module for wiring the audit pipeline from configuration.

Handles:
- Loading configuration from TOML files and environment
- Configuring structured logging
- Creating the configured event store
- Creating the interceptor and history service around one registry

Example usage:

    from chronicle.bootstrap import bootstrap

    audit = bootstrap()
    audit.registry.register("EMPLOYEE", "HR", loader=employees.get)
    create_employee = audit.interceptor.wrap(
        employees.create, action=AuditAction.CREATE, entity_type="EMPLOYEE"
    )
    history = await audit.history.get_history(42)
"""

from dataclasses import dataclass

from chronicle.audit.history import AuditHistoryService
from chronicle.audit.interception import AuditInterceptor
from chronicle.audit.registry import EntityRegistry
from chronicle.audit.store import EventStore
from chronicle.audit.stores.factory import create_event_store
from chronicle.config import get_settings
from chronicle.config.settings import Settings
from chronicle.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class AuditRuntime:
    """Wired audit components sharing one store and one registry."""

    settings: Settings
    store: EventStore
    registry: EntityRegistry
    interceptor: AuditInterceptor
    history: AuditHistoryService


def bootstrap(
    settings: Settings | None = None,
    store: EventStore | None = None,
    configure_logging: bool = True,
) -> AuditRuntime:
    """Build an AuditRuntime.

    Args:
        settings: Settings to use (default: ``get_settings()``)
        store: Event store to use (default: the configured backend)
        configure_logging: Whether to call ``setup_logging`` from settings
    """
    settings = settings or get_settings()

    if configure_logging:
        log_config = settings.observability.logging
        setup_logging(
            level=log_config.level,
            format=log_config.format,
            redact_pii=log_config.redact_pii,
        )

    store = store or create_event_store(settings.storage)
    registry = EntityRegistry()
    interceptor = AuditInterceptor.from_settings(store, registry, settings)

    logger.info(
        "audit_runtime_ready",
        backend=settings.storage.backend,
        append_max_attempts=settings.audit.append_max_attempts,
    )
    return AuditRuntime(
        settings=settings,
        store=store,
        registry=registry,
        interceptor=interceptor,
        history=AuditHistoryService(store),
    )
