from datetime import datetime

import sqlalchemy as sa

from maxit_backend.lib.common import as_utc, utcnow


class UTCDateTime(sa.TypeDecorator):
    """Timezone-aware datetime that always round-trips as UTC, including on SQLite."""

    impl = sa.DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        return as_utc(value) if value is not None else None

    def process_result_value(self, value: datetime | None, dialect):
        return as_utc(value) if value is not None else None


# Factory function for creating a timestamp column (with timezone)
_timestamp_column = lambda nullable, default: sa.Column(
    UTCDateTime(),
    nullable=nullable,
    default=utcnow if default else None,
    server_default=sa.func.now() if default else None,
)

_updated_at_column = lambda: sa.Column(
    UTCDateTime(),
    nullable=False,
    default=utcnow,
    onupdate=utcnow,
    server_default=sa.func.now(),
)

__all__ = ["UTCDateTime", "_timestamp_column", "_updated_at_column"]
