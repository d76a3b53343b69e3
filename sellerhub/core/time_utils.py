"""
UTC helpers shared by the payout services.

All payout timestamps are stored timezone-aware. Some backends (SQLite) hand
them back without an offset; those values were written as UTC and are
re-attached to UTC here before any comparison.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return a timezone-aware UTC datetime (None passes through)."""
    if value is None:
        return None
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
