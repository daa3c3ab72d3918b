"""Canonical structured representation of entity state.

Every entity type the pipeline sees is reduced to an ordered list of
``(field_name, value)`` pairs with JSON-compatible values. The diff engine
and the stored payloads only ever work with this form.

Supported inputs, in lookup order:
- objects exposing ``audit_fields()`` (explicit opt-in)
- pydantic models
- dataclass instances
- mappings
"""

import dataclasses
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError, to_jsonable_python

from chronicle.audit.errors import AuditSerializationError

EntityFields = list[tuple[str, Any]]


@runtime_checkable
class SupportsAuditFields(Protocol):
    """Entities that describe their own audit representation."""

    def audit_fields(self) -> list[tuple[str, Any]]: ...


def entity_fields(entity: Any) -> EntityFields:
    """Return the ordered canonical field list for ``entity``.

    Raises:
        AuditSerializationError: If the entity type is unsupported or a
            value has no JSON-compatible form
    """
    entity_type = type(entity).__name__
    try:
        if isinstance(entity, SupportsAuditFields):
            raw = list(entity.audit_fields())
        elif isinstance(entity, BaseModel):
            return list(entity.model_dump(mode="json").items())
        elif dataclasses.is_dataclass(entity) and not isinstance(entity, type):
            raw = [
                (f.name, getattr(entity, f.name))
                for f in dataclasses.fields(entity)
            ]
        elif isinstance(entity, Mapping):
            raw = [(str(k), v) for k, v in entity.items()]
        else:
            raise AuditSerializationError(
                f"Cannot derive audit fields from {entity_type}",
                entity_type=entity_type,
            )
        return [(name, to_jsonable_python(value)) for name, value in raw]
    except AuditSerializationError:
        raise
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise AuditSerializationError(
            f"Failed to serialize {entity_type} for audit: {e}",
            entity_type=entity_type,
            cause=e,
        ) from e


def serialize_entity(entity: Any) -> dict[str, Any]:
    """Full serialized entity document used as a CREATED/DELETED payload."""
    return dict(entity_fields(entity))


def field_value(entity: Any, field_name: str) -> Any:
    """Read one raw field from an entity without serializing it."""
    if isinstance(entity, Mapping):
        return entity.get(field_name)
    return getattr(entity, field_name, None)
