"""Audit capture configuration."""

from pydantic import BaseModel, Field

DEFAULT_METADATA_FIELDS: tuple[str, ...] = (
    "id",
    "created_timestamp",
    "updated_timestamp",
    "createdTimestamp",
    "updatedTimestamp",
)


class AuditConfig(BaseModel):
    """Configuration for the audit capture pipeline."""

    default_domain: str = Field(
        default="DEFAULT",
        description="Domain used when a registration does not name one",
    )
    default_initiator: str = Field(
        default="SYSTEM",
        min_length=1,
        description="Initiator recorded when none can be resolved",
    )
    metadata_fields: list[str] = Field(
        default_factory=lambda: list(DEFAULT_METADATA_FIELDS),
        description="Identifier/timestamp fields excluded from summaries",
    )
    append_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for one append before the audit write fails",
    )
    append_retry_backoff_seconds: float = Field(
        default=0.05,
        ge=0.0,
        description="Linear backoff between append attempts (seconds)",
    )
