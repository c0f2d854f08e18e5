from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional


_FALLBACK_FORMATS = ("%m/%d/%Y, %I:%M:%S %p", "%m/%d/%Y %H:%M", "%m/%d/%Y")


def parse_date_value(value: Any) -> Optional[datetime]:
    """Parse a stored date/date-time string into a naive datetime.

    Accepts ISO 8601 (date only means local midnight) and a few
    locale-style forms. Aware values are converted to UTC and made naive so
    that every parsed value compares with every other one.
    """
    if isinstance(value, datetime):
        parsed: Optional[datetime] = value
    elif not isinstance(value, str) or not value.strip():
        return None
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            parsed = None
            for fmt in _FALLBACK_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def format_date_time(dt: datetime) -> str:
    """Medium date + short time, e.g. ``Mar 10, 2024, 9:05 AM``."""
    hour = dt.hour % 12 or 12
    meridiem = "AM" if dt.hour < 12 else "PM"
    return f"{dt:%b} {dt.day}, {dt.year}, {hour}:{dt:%M} {meridiem}"


def epoch_millis(dt: datetime) -> int:
    """Milliseconds since 1970-01-01 treating naive values as UTC (stable across hosts)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
