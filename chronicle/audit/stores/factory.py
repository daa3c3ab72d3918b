"""Build the configured event store backend."""

from chronicle.audit.store import EventStore
from chronicle.config.models.storage import StorageConfig
from chronicle.observability.logging import get_logger

logger = get_logger(__name__)


def create_event_store(config: StorageConfig) -> EventStore:
    """Create the event store named by ``storage.backend``."""
    if config.backend == "postgres":
        from chronicle.audit.stores.postgres import PostgresEventStore
        from chronicle.db.pool import PostgresPool

        store: EventStore = PostgresEventStore(PostgresPool.from_config(config.postgres))
    else:
        from chronicle.audit.stores.inmemory import InMemoryEventStore

        store = InMemoryEventStore()

    logger.info("event_store_created", backend=config.backend)
    return store
