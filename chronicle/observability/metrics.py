"""Prometheus metrics for Chronicle.

Tracks audit events written, commit failures, append retries and
write-path latency.
"""

from prometheus_client import Counter, Histogram

AUDIT_EVENTS_WRITTEN = Counter(
    "chronicle_audit_events_written_total",
    "Total number of audit events committed",
    labelnames=["domain", "entity_type", "event_kind"],
)

AUDIT_COMMIT_FAILURES = Counter(
    "chronicle_audit_commit_failures_total",
    "Audit writes that failed and forced a rollback",
    labelnames=["entity_type", "reason"],
)

AUDIT_APPEND_RETRIES = Counter(
    "chronicle_audit_append_retries_total",
    "Append attempts retried after a transient store failure",
    labelnames=["entity_type"],
)

SNAPSHOT_FALLBACKS = Counter(
    "chronicle_snapshot_fallbacks_total",
    "Snapshots that fell back to a partial copy",
    labelnames=["entity_type"],
)

AUDIT_WRITE_LATENCY = Histogram(
    "chronicle_audit_write_latency_seconds",
    "Latency of building and appending one audit event",
    labelnames=["entity_type", "event_kind"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)
