"""Timestamp normalization.

Upstream payloads carry timestamps as epoch seconds, epoch milliseconds,
ISO-8601 strings, RFC 2822 strings or nothing at all. Everything is folded
into a timezone-aware UTC datetime; anything unusable becomes "now".
"""

from __future__ import annotations

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

# Values above this are milliseconds (more than 10 digits of seconds).
MILLIS_THRESHOLD = 9_999_999_999
MIN_VALID_YEAR = 1970


def _from_epoch(value: float) -> datetime | None:
    millis = value if abs(value) > MILLIS_THRESHOLD else value * 1000
    try:
        return datetime.fromtimestamp(millis / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


def _to_utc(dt: datetime) -> datetime | None:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    try:
        return dt.astimezone(UTC)
    except (OverflowError, ValueError):
        # offsets that push the instant past year 1 or 9999
        return None


def _from_string(value: str) -> datetime | None:
    s = value.strip()
    if not s:
        return None

    try:
        return _from_epoch(float(s))
    except ValueError:
        pass

    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        try:
            dt = parsedate_to_datetime(s)
        except (TypeError, ValueError, IndexError):
            return None

    return _to_utc(dt)


def parse_timestamp(raw: object) -> datetime | None:
    """Parse a raw timestamp without applying the validity rule."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return _from_epoch(raw)
    if isinstance(raw, str):
        return _from_string(raw)
    if isinstance(raw, datetime):
        return _to_utc(raw)
    return None


def is_valid_instant(dt: datetime | None) -> bool:
    """A parsed instant counts only when it lands after 1970."""
    return dt is not None and dt.year > MIN_VALID_YEAR


def normalize_timestamp(raw: object, *, now: datetime | None = None) -> datetime:
    """Return a valid UTC instant for `raw`, falling back to `now`."""
    dt = parse_timestamp(raw)
    if dt is not None and is_valid_instant(dt):
        return dt
    return now if now is not None else datetime.now(UTC)
