"""Timestamp helpers and the created_at/updated_at mixin."""

from datetime import datetime, timezone
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Timezone-aware current time used for every stored timestamp."""
    return datetime.now(timezone.utc)


class TimestampMixin(SQLModel):
    """Adds created_at and updated_at timestamps."""

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"onupdate": utcnow},
    )
