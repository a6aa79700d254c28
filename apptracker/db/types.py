from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator

from apptracker.utils.timezone import to_utc_aware


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware DateTime that always stores UTC.

    SQLite keeps only the wall-clock part of a datetime, so an offset such as
    +05:00 would otherwise be read back as UTC. Values are converted on write
    and come back UTC-aware on every backend.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return to_utc_aware(value)

    def process_result_value(self, value, dialect):
        return to_utc_aware(value)
