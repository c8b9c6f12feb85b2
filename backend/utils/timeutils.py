"""
UTC time helpers.

All timestamps in this service are naive UTC datetimes, matching the
DateTime columns in db_models. Aware datetimes coming from callers are
converted before any comparison.
"""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date_param(value: str | None) -> datetime | None:
    """
    Parse a report filter (YYYY-MM-DD or full ISO-8601) into naive UTC.

    Returns None for empty input; raises ValueError for malformed input.
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return to_naive_utc(parsed)
