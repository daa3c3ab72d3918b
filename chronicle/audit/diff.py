"""Diff engine: field-level differences between two entity states.

Works purely on the canonical ``(field_name, value)`` representation
produced by ``chronicle.audit.entity``. No I/O.
"""

from collections.abc import Iterable, Mapping, Sequence
from numbers import Number
from typing import Any

from chronicle.audit.models import ChangeSet, FieldChange


def values_equal(old: Any, new: Any) -> bool:
    """Semantic equality for canonical field values.

    Numbers compare by value (``1 == 1.0``), but booleans are a distinct
    type from numbers and strings never equal numbers. Containers compare
    element-wise with the same rules.
    """
    if old is None or new is None:
        return old is new
    if isinstance(old, bool) or isinstance(new, bool):
        return isinstance(old, bool) and isinstance(new, bool) and old == new
    if isinstance(old, Number) and isinstance(new, Number):
        return old == new
    if isinstance(old, Mapping) and isinstance(new, Mapping):
        if old.keys() != new.keys():
            return False
        return all(values_equal(old[k], new[k]) for k in old)
    if _is_sequence(old) and _is_sequence(new):
        if len(old) != len(new):
            return False
        return all(values_equal(a, b) for a, b in zip(old, new))
    if type(old) is not type(new):
        return False
    return old == new


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def diff(
    old: Iterable[tuple[str, Any]] | None,
    new: Iterable[tuple[str, Any]],
    metadata_fields: Iterable[str] = (),
) -> ChangeSet:
    """Compute the ChangeSet from OLD to NEW.

    Every field present in NEW is compared with OLD (a missing OLD field, or
    a missing OLD state, counts as None). Output follows NEW's field order.
    """
    previous = dict(old or ())
    changes = [
        FieldChange(field_name=name, old_value=previous.get(name), new_value=value)
        for name, value in new
        if not values_equal(previous.get(name), value)
    ]
    return ChangeSet(changes, metadata_fields=metadata_fields)
