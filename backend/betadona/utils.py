from datetime import date, datetime, timedelta, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Make a naive datetime timezone-aware (UTC). Already-aware datetimes pass through.

    MongoDB stores datetimes without tzinfo (naive). When you read a date field
    from a Mongo document and need to compare it with utcnow() (which is
    tz-aware), wrap it with ensure_utc() first.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def yesterday_utc() -> date:
    """Calendar day before today in UTC; the default settlement target."""
    return (utcnow() - timedelta(days=1)).date()


def parse_utc(value: str | datetime) -> datetime:
    """Parse an ISO 8601 string (with or without Z/offset) into a tz-aware UTC datetime."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
