"""Field-level change models."""

from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FieldChange(BaseModel):
    """Old and new value of one field."""

    model_config = ConfigDict(frozen=True)

    field_name: str = Field(..., description="Changed field")
    old_value: Any = Field(default=None, description="Value before the mutation")
    new_value: Any = Field(default=None, description="Value after the mutation")

    @classmethod
    def from_stored(cls, field_name: str, change: dict[str, Any]) -> "FieldChange":
        """Build from a stored ``{"old": .., "new": ..}`` entry."""
        return cls(
            field_name=field_name,
            old_value=change.get("old"),
            new_value=change.get("new"),
        )


class ChangeSet:
    """Ordered mapping of field name to FieldChange.

    Metadata fields (identifiers, timestamps) stay in the raw map but are
    left out of ``content_changes()``.
    """

    def __init__(
        self,
        changes: Iterable[FieldChange] = (),
        metadata_fields: Iterable[str] = (),
    ) -> None:
        self._changes: dict[str, FieldChange] = {c.field_name: c for c in changes}
        self.metadata_fields = frozenset(metadata_fields)

    def __len__(self) -> int:
        return len(self._changes)

    def __iter__(self) -> Iterator[FieldChange]:
        return iter(self._changes.values())

    def __contains__(self, field_name: object) -> bool:
        return field_name in self._changes

    def __getitem__(self, field_name: str) -> FieldChange:
        return self._changes[field_name]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChangeSet):
            return NotImplemented
        return list(self._changes.values()) == list(other._changes.values())

    def __repr__(self) -> str:
        return f"ChangeSet({list(self._changes)!r})"

    @property
    def is_empty(self) -> bool:
        return not self._changes

    @property
    def field_names(self) -> list[str]:
        return list(self._changes)

    def content_changes(self) -> list[FieldChange]:
        """Changes to non-metadata fields, in order."""
        return [
            c for c in self._changes.values()
            if c.field_name not in self.metadata_fields
        ]

    def to_payload(self) -> dict[str, dict[str, Any]]:
        """Stored form: ``{field: {"old": .., "new": ..}}``."""
        return {
            c.field_name: {"old": c.old_value, "new": c.new_value}
            for c in self._changes.values()
        }
