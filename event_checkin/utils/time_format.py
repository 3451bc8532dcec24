# utils/time_format.py
"""
Time and duration helpers shared by the backend and the check-in station.
Parses timestamps and stored interval text, renders clock times and compact
durations ("1h 30m") and maps attendee statuses to display labels.
"""

import math
import re
from datetime import datetime, timezone

INVALID_TIME = 'Invalid time'
INVALID_DATE = 'Invalid date'
ZERO_DURATION = '0m'

_CLOCK_RE = re.compile(r'(\d+):(\d+):(\d+)')
_DAY_RE = re.compile(r'(\d+)\s+days?')
_SECONDS_RE = re.compile(r'^\s*(\d+)\s*(?:seconds?)?\s*$')

_STATUS_DISPLAY = {
    'IN': {'text': 'Inside', 'style_class': 'text-green-600 bg-green-100'},
    'OUT': {'text': 'Completed', 'style_class': 'text-blue-600 bg-blue-100'},
    'NEVER_ENTERED': {'text': 'Not Entered', 'style_class': 'text-gray-600 bg-gray-100'},
}


def utcnow():
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value):
    """Attach UTC to naive datetimes (as read back from SQLite) and normalize aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value):
    """
    Parse a datetime or ISO-8601 string into an aware UTC datetime.

    Returns None for empty or unparseable input instead of raising.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def to_iso(value):
    """Serialize a datetime as ISO-8601 UTC, passing None through."""
    parsed = parse_timestamp(value)
    return parsed.isoformat() if parsed else None


def elapsed_seconds(start, end=None):
    """Whole seconds between two instants, floored and clamped at zero."""
    start_time = parse_timestamp(start)
    end_time = parse_timestamp(end) if end is not None else utcnow()
    if start_time is None or end_time is None:
        return 0
    delta = math.floor((end_time - start_time).total_seconds())
    return max(delta, 0)


def _clock(dt, with_seconds=False):
    hour = dt.hour % 12 or 12
    suffix = 'AM' if dt.hour < 12 else 'PM'
    if with_seconds:
        return f"{hour}:{dt.minute:02d}:{dt.second:02d} {suffix}"
    return f"{hour}:{dt.minute:02d} {suffix}"


def format_clock_time(timestamp):
    """Render a timestamp as local 12-hour clock time, e.g. "2:30 PM"."""
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return INVALID_TIME
    return _clock(parsed.astimezone())


def format_clock_time_with_seconds(timestamp):
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return INVALID_TIME
    return _clock(parsed.astimezone(), with_seconds=True)


def format_date_time(timestamp):
    """Render date and 12-hour time, e.g. "12/25/2023 2:30 PM"."""
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return INVALID_DATE
    local = parsed.astimezone()
    return f"{local.month}/{local.day}/{local.year} {_clock(local)}"


def parse_interval_seconds(raw):
    """
    Convert stored interval text into integer seconds.

    Accepted forms:
        "" / None           -> 0
        3600 / "3600"       -> 3600
        "3661 seconds"      -> 3661
        "01:30:45"          -> 5445
        "1 day 02:00:00"    -> 93600
        "2 days"            -> 172800

    Returns:
        int or None when the text cannot be interpreted
    """
    if raw is None:
        return 0
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return max(raw, 0)

    text = str(raw).strip()
    if not text:
        return 0

    day_match = _DAY_RE.search(text)
    days = int(day_match.group(1)) if day_match else 0

    clock_match = _CLOCK_RE.search(text)
    if clock_match:
        hours, minutes, seconds = (int(part) for part in clock_match.groups())
        return days * 86400 + hours * 3600 + minutes * 60 + seconds

    if day_match and _DAY_RE.fullmatch(text):
        return days * 86400

    seconds_match = _SECONDS_RE.match(text)
    if seconds_match:
        return int(seconds_match.group(1))

    return None


def seconds_to_interval(total_seconds):
    """Serialize a duration for the wire: "<N> seconds"."""
    return f"{int(total_seconds or 0)} seconds"


def render_seconds(total_seconds):
    """
    Render a whole-second duration using its most significant non-zero parts.
    Seconds only appear when the duration is under one minute.
    """
    if not total_seconds or total_seconds <= 0:
        return ZERO_DURATION

    if total_seconds < 60:
        return f"{int(total_seconds)}s"

    days, remainder = divmod(int(total_seconds), 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")

    return ' '.join(parts) if parts else ZERO_DURATION


def format_duration(raw_interval):
    """
    Human-readable duration for stored interval text.
    Input that cannot be parsed is returned unchanged, so formatting an
    already formatted value is a no-op.
    """
    if raw_interval is None or raw_interval == '':
        return ZERO_DURATION

    total_seconds = parse_interval_seconds(raw_interval)
    if total_seconds is None:
        return raw_interval
    return render_seconds(total_seconds)


def calculate_elapsed(start, end=None):
    """Formatted time between start and end (defaults to now); never negative."""
    return render_seconds(elapsed_seconds(start, end))


def status_label(status):
    """Display text and style class for an attendee status."""
    key = getattr(status, 'value', status)
    if key not in _STATUS_DISPLAY:
        raise ValueError(f"Unknown attendee status: {status!r}")
    return dict(_STATUS_DISPLAY[key])
