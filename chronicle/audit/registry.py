"""Startup-time registry of audited entity types.

Each entity type is registered once, with the loader used to fetch its
current state before UPDATE/DELETE operations and the field names the
pipeline reads from its state.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from chronicle.audit.errors import RegistrationError
from chronicle.observability.logging import get_logger

logger = get_logger(__name__)

# (entity_id) -> state | None; may be sync or async, may raise NotFoundError
StateLoader = Callable[[Any], Any]


@dataclass(frozen=True)
class EntityRegistration:
    """How the pipeline reads one entity type."""

    entity_type: str
    domain: str
    loader: StateLoader | None = None
    id_field: str = "id"
    version_field: str | None = "version"
    initiator_field: str | None = "updated_by"
    metadata_fields: frozenset[str] | None = None


class EntityRegistry:
    """Maps entity type names to their registrations."""

    def __init__(self) -> None:
        self._registrations: dict[str, EntityRegistration] = {}

    def register(
        self,
        entity_type: str,
        domain: str,
        loader: StateLoader | None = None,
        *,
        id_field: str = "id",
        version_field: str | None = "version",
        initiator_field: str | None = "updated_by",
        metadata_fields: Iterable[str] | None = None,
    ) -> EntityRegistration:
        """Register an entity type.

        Args:
            entity_type: Entity type name recorded on events, e.g. "EMPLOYEE"
            domain: Business domain recorded on events, e.g. "HR"
            loader: Current-state loader, required for UPDATE/DELETE auditing
            id_field: Field holding the entity identifier
            version_field: Field holding the optimistic-lock version, if any
            initiator_field: Field naming the acting user, if any
            metadata_fields: Overrides the configured metadata field set

        Raises:
            RegistrationError: If the entity type is already registered
        """
        if not entity_type:
            raise RegistrationError("Entity type must be a non-empty string")
        if entity_type in self._registrations:
            raise RegistrationError(f"Entity type {entity_type!r} is already registered")
        if loader is not None and not callable(loader):
            raise RegistrationError(f"Loader for {entity_type!r} is not callable")

        registration = EntityRegistration(
            entity_type=entity_type,
            domain=domain,
            loader=loader,
            id_field=id_field,
            version_field=version_field,
            initiator_field=initiator_field,
            metadata_fields=(
                frozenset(metadata_fields) if metadata_fields is not None else None
            ),
        )
        self._registrations[entity_type] = registration
        logger.info(
            "entity_type_registered",
            entity_type=entity_type,
            domain=domain,
            has_loader=loader is not None,
        )
        return registration

    def get(self, entity_type: str) -> EntityRegistration:
        try:
            return self._registrations[entity_type]
        except KeyError:
            raise RegistrationError(
                f"Entity type {entity_type!r} is not registered"
            ) from None

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._registrations

    @property
    def entity_types(self) -> list[str]:
        return list(self._registrations)
