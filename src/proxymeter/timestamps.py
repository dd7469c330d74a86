import re
from datetime import datetime, timedelta, timezone

# date "T" time, optional fraction, then "Z" or a numeric offset
_RFC3339_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:(Z)|([+-])(\d{2}):(\d{2}))",
    re.ASCII,
)


def parse_rfc3339(value: "str") -> "datetime":
    """
    parses an RFC 3339 timestamp such as '2024-01-01T10:05:00Z' or
    '2024-01-01T10:05:00.5+02:00' into a timezone-aware datetime.
    Raises ValueError when the string is not a valid timestamp.
    """
    match = _RFC3339_RE.fullmatch(value)
    if match is None:
        raise ValueError(f"not an RFC 3339 timestamp: {value!r}")

    year, month, day, hour, minute, second = (
        int(g) for g in match.group(1, 2, 3, 4, 5, 6)
    )
    fraction = match.group(7) or ""
    # datetime only keeps microseconds, extra digits are dropped
    microsecond = int(fraction[:6].ljust(6, "0")) if fraction else 0

    if match.group(8):
        tz = timezone.utc
    else:
        offset_hours, offset_minutes = int(match.group(10)), int(match.group(11))
        if offset_hours > 23 or offset_minutes > 59:
            raise ValueError(f"offset out of range: {value!r}")
        offset = timedelta(hours=offset_hours, minutes=offset_minutes)
        if match.group(9) == "-":
            offset = -offset
        tz = timezone.utc if not offset else timezone(offset)

    # datetime() raises ValueError for out of range fields (month 13, Feb 30...)
    return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)


def format_rfc3339(value: "datetime") -> "str":
    """
    renders a timezone-aware datetime as RFC 3339 with second
    precision, using 'Z' for a zero offset.
    """
    offset = value.utcoffset()
    if offset is None:
        raise ValueError("cannot format a naive datetime")

    base = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if not offset:
        return base + "Z"

    sign = "-" if offset < timedelta(0) else "+"
    total_minutes = abs(int(offset.total_seconds())) // 60
    hours, minutes = divmod(total_minutes, 60)
    return f"{base}{sign}{hours:02d}:{minutes:02d}"


def truncate_to_hour(value: "datetime") -> "datetime":
    """
    returns the start of the hour containing value, keeping its offset.
    """
    return value.replace(minute=0, second=0, microsecond=0)


def ensure_aware(value: "datetime") -> "datetime":
    """
    treats naive datetimes as UTC.
    """
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utc_now() -> "datetime":
    return datetime.now(timezone.utc)
