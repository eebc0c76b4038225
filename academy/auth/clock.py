"""
Time helpers.

The store keeps naive UTC timestamps (SQLite drops tzinfo), so every
comparison against stored values uses naive UTC as well.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
