"""Summary generator: deterministic one-line descriptions of audit events."""

import json
from typing import Any

from chronicle.audit.models import ChangeSet, EventKind


def render_value(value: Any) -> str:
    """Render a canonical value for a summary sentence."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"))
    return str(value)


def summarize(
    event_kind: EventKind,
    entity_type: str,
    changes: ChangeSet | None = None,
) -> str:
    """Build the summary for one event.

    Examples:
        EMPLOYEE created
        EMPLOYEE updated: lastName (from 'Doe' to 'Smith')
        EMPLOYEE updated - no changes detected
        EMPLOYEE updated - metadata only
    """
    if event_kind is EventKind.CREATED:
        return f"{entity_type} created"
    if event_kind is EventKind.DELETED:
        return f"{entity_type} deleted"

    if changes is None or changes.is_empty:
        return f"{entity_type} updated - no changes detected"

    described = [
        f"{c.field_name} (from '{render_value(c.old_value)}' to '{render_value(c.new_value)}')"
        for c in changes.content_changes()
    ]
    if not described:
        return f"{entity_type} updated - metadata only"
    return f"{entity_type} updated: " + ", ".join(described)
