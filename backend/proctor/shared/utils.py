"""Time helpers shared by the lifecycle, event log and scoring code.

SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
columns, so everything read from the database goes through ``ensure_utc``.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Naive values are taken to be UTC; aware values are converted."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def elapsed_seconds(start: datetime | None, end: datetime | None) -> float:
    """Seconds from ``start`` to ``end``; 0 when either is missing."""
    start, end = ensure_utc(start), ensure_utc(end)
    if start is None or end is None:
        return 0.0
    return (end - start).total_seconds()


def isoformat_or_none(dt: datetime | None) -> str | None:
    dt = ensure_utc(dt)
    return dt.isoformat() if dt else None
