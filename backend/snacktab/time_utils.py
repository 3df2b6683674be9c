from __future__ import annotations

import re
from datetime import date, datetime, time, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app

_FRACTION_RE = re.compile(r"([T ]\d{2}:\d{2}:\d{2})\.(\d+)")

# es-CO short month names, as rendered on the printed tab
SPANISH_MONTHS = ("ene", "feb", "mar", "abr", "may", "jun", "jul", "ago", "sept", "oct", "nov", "dic")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def store_tz() -> tzinfo:
    """Timezone the shop lives in (STORE_TIMEZONE)."""
    return ZoneInfo(current_app.config.get("STORE_TIMEZONE", "America/Bogota"))


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    # Postgres trims trailing zeros; fromisoformat wants exactly 6 digits on 3.10
    s = _FRACTION_RE.sub(lambda m: f"{m.group(1)}.{(m.group(2) + '000000')[:6]}", s)

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_local_datetime(value: str, tz: tzinfo) -> datetime:
    """
    Parse a datetime-local form value ("YYYY-MM-DDTHH:MM") as wall-clock time in tz.

    Values that carry an offset are converted into tz instead.
    """
    dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def format_display_time(dt: datetime) -> str:
    """Render the snapshotted `fecha` string, e.g. "05 ene, 03:45 p. m."."""
    hour = dt.hour % 12 or 12
    suffix = "a. m." if dt.hour < 12 else "p. m."
    return f"{dt.day:02d} {SPANISH_MONTHS[dt.month - 1]}, {hour:02d}:{dt.minute:02d} {suffix}"


def day_bounds_utc(
    start: Optional[date], end: Optional[date], tz: tzinfo
) -> tuple[Optional[datetime], Optional[datetime]]:
    """
    Turn an inclusive local date range into UTC-naive bounds.

    start maps to local 00:00:00, end to local 23:59:59.999999.
    """
    start_dt = None
    end_dt = None
    if start is not None:
        start_dt = datetime.combine(start, time.min, tzinfo=tz).astimezone(timezone.utc).replace(tzinfo=None)
    if end is not None:
        end_dt = datetime.combine(end, time.max, tzinfo=tz).astimezone(timezone.utc).replace(tzinfo=None)
    return start_dt, end_dt


def parse_date(value: Optional[str]) -> Optional[date]:
    """"YYYY-MM-DD" (or a full ISO datetime) -> date; blank -> None."""
    if value is None or not value.strip():
        return None
    return date.fromisoformat(value.strip()[:10])
