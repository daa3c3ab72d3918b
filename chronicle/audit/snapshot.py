"""Snapshot copier: referentially independent copies of entity state."""

import copy
from dataclasses import dataclass, field
from typing import Any

from chronicle.observability.logging import get_logger
from chronicle.observability.metrics import SNAPSHOT_FALLBACKS

logger = get_logger(__name__)


def copy_entity(
    entity: Any, entity_type: str = "UNKNOWN", *, record_metrics: bool = True
) -> Any:
    """Deep-copy ``entity`` so later mutation of the original cannot leak in.

    A failed deep copy never propagates: the failure is logged and the best
    partial copy is returned instead (see ``_partial_copy``).
    """
    try:
        return copy.deepcopy(entity)
    except Exception as e:  # noqa: BLE001 - arbitrary __deepcopy__ implementations
        logger.warning(
            "snapshot_deep_copy_failed",
            entity_type=entity_type,
            error=str(e),
        )
        if record_metrics:
            SNAPSHOT_FALLBACKS.labels(entity_type=entity_type).inc()
        return _partial_copy(entity, entity_type)


def _partial_copy(entity: Any, entity_type: str) -> Any:
    """Shallow copy, then deep-copy each attribute or item that allows it."""
    try:
        shallow = copy.copy(entity)
    except Exception as e:  # noqa: BLE001
        logger.error("snapshot_shallow_copy_failed", entity_type=entity_type, error=str(e))
        return entity

    if isinstance(shallow, dict):
        for key, value in shallow.items():
            shallow[key] = _copy_value(value)
        return shallow

    attrs = getattr(shallow, "__dict__", None)
    if attrs is not None:
        for name, value in list(attrs.items()):
            try:
                object.__setattr__(shallow, name, _copy_value(value))
            except (AttributeError, TypeError):
                continue
    return shallow


def _copy_value(value: Any) -> Any:
    try:
        return copy.deepcopy(value)
    except Exception:  # noqa: BLE001
        return value


@dataclass
class Snapshot:
    """Pre-mutation state owned by exactly one in-flight invocation."""

    entity_type: str
    entity_id: Any
    state: Any
    released: bool = field(default=False, init=False)

    @classmethod
    def capture(
        cls,
        entity_type: str,
        entity_id: Any,
        entity: Any,
        *,
        record_metrics: bool = True,
    ) -> "Snapshot":
        return cls(
            entity_type=entity_type,
            entity_id=entity_id,
            state=copy_entity(entity, entity_type, record_metrics=record_metrics),
        )

    def release(self) -> None:
        """Drop the captured state; safe to call more than once."""
        self.state = None
        self.released = True
