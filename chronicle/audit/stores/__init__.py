"""Event store backends."""

from chronicle.audit.store import EventStore
from chronicle.audit.stores.factory import create_event_store
from chronicle.audit.stores.inmemory import InMemoryEventStore
from chronicle.audit.stores.postgres import PostgresEventStore

__all__ = [
    "EventStore",
    "InMemoryEventStore",
    "PostgresEventStore",
    "create_event_store",
]
