"""Time helpers.

All timestamps persisted by PulseWatch are naive datetimes in UTC so that
SQLite and PostgreSQL compare them the same way.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
