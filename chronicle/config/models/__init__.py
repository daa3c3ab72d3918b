"""Configuration model exports.

    from chronicle.config.models import AuditConfig, StorageConfig
"""

from chronicle.config.models.audit import AuditConfig
from chronicle.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
)
from chronicle.config.models.storage import PostgresConfig, StorageConfig

__all__ = [
    "AuditConfig",
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "PostgresConfig",
    "StorageConfig",
]
