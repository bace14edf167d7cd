"""Date-time helpers for ledger timestamps and business-day windows."""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Return the current server time as a naive UTC timestamp (storage format)."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(moment: datetime) -> datetime:
    """Normalise an aware or naive-UTC timestamp to naive UTC."""

    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def day_window(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """Return the naive UTC ``[start, end)`` bounds of a calendar day in ``tz_name``."""

    zone = ZoneInfo(tz_name)
    start_local = datetime.combine(day, time.min, tzinfo=zone)
    end_local = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return as_naive_utc(start_local), as_naive_utc(end_local)


def local_date(moment: datetime, tz_name: str) -> date:
    """Return the calendar date of a naive-UTC timestamp as seen in ``tz_name``."""

    aware = moment.replace(tzinfo=timezone.utc) if moment.tzinfo is None else moment
    return aware.astimezone(ZoneInfo(tz_name)).date()
