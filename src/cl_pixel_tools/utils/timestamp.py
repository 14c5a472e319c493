from datetime import datetime, timezone


def toTimeStamp(localTime: datetime) -> int:
    """
    Converts a datetime to a UTC timestamp in milliseconds.

    Naive datetimes are assumed to be in the system's local timezone.
    """
    if localTime.tzinfo is None or localTime.tzinfo.utcoffset(localTime) is None:
        localTime = localTime.astimezone()

    return int(localTime.astimezone(timezone.utc).timestamp() * 1000)


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")
