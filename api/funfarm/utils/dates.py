from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

VIETNAM_OFFSET = timedelta(hours=7)


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values (SQLite) are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def vietnam_date(value: datetime) -> date:
    """Calendar date of ``value`` in Vietnam time (UTC+7)."""
    return (as_utc(value) + VIETNAM_OFFSET).date()
