"""Time helpers.

All timestamps are naive UTC so they compare the same way on SQLite and
PostgreSQL (SQLite drops tzinfo on the way back).
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
