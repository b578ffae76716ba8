# newhighs/utils/timeutils.py
from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo
from typing import Optional

DEFAULT_TZ_NAME = "America/New_York"
DEFAULT_TZ_LABEL = "EST"
PULL_TIME_FMT = "%m/%d/%y, %H:%M"


def tz(tz_name: str = DEFAULT_TZ_NAME) -> ZoneInfo:
    return ZoneInfo(tz_name)


def now_in(tz_name: str = DEFAULT_TZ_NAME) -> datetime:
    return datetime.now(tz(tz_name))


def ensure_tz(dt: Optional[datetime], tz_name: str = DEFAULT_TZ_NAME) -> Optional[datetime]:
    """Return dt converted to tz_name. Naive datetimes are assumed to be UTC (how the DB stores them)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.astimezone(tz(tz_name))


def fmt_pull_time(
    dt: Optional[datetime] = None,
    *,
    tz_name: str = DEFAULT_TZ_NAME,
    label: str = DEFAULT_TZ_LABEL,
) -> str:
    """MM/DD/YY, HH:MM (24h) in tz_name, suffixed with a fixed zone label."""
    local = ensure_tz(dt, tz_name) if dt is not None else now_in(tz_name)
    assert local is not None
    return f"{local.strftime(PULL_TIME_FMT)} {label}"


def fmt_iso(dt: Optional[datetime]) -> Optional[str]:
    """UTC ISO-8601 for API payloads."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.isoformat()
