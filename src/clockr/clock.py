from __future__ import annotations

import calendar
import os
from datetime import UTC, date, datetime, timedelta, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger

from clockr.errors import ValidationError

_ONE_MS = timedelta(milliseconds=1)


def truncate_ms(dt: datetime) -> datetime:
    return dt.replace(microsecond=dt.microsecond - dt.microsecond % 1000)


def utc_now() -> datetime:
    # Millisecond precision keeps stored durations exactly end - start.
    return truncate_ms(datetime.now(UTC))


def ms_between(start: datetime, end: datetime) -> int:
    return (end - start) // _ONE_MS


def to_iso(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat(timespec="milliseconds")


def parse_ts(ts: str) -> datetime:
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


_LOCALTIME = Path("/etc/localtime")


def system_timezone() -> tzinfo:
    """The system zone with its DST rules, read from $TZ or /etc/localtime."""
    name = os.environ.get("TZ", "").removeprefix(":")
    try:
        if name.startswith("/"):
            with open(name, "rb") as f:
                return ZoneInfo.from_file(f, key=name)
        if name:
            return ZoneInfo(name)
        if _LOCALTIME.exists():
            with _LOCALTIME.open("rb") as f:
                return ZoneInfo.from_file(f, key="localtime")
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        logger.warning("cannot load system timezone {!r}: {}", name or str(_LOCALTIME), e)

    # No zone data: only the current offset is known.
    return datetime.now().astimezone().tzinfo or UTC


def resolve_timezone(name: str | None) -> tzinfo:
    """Return the named IANA zone, or the system local zone when unset."""
    if not name:
        return system_timezone()
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"unknown timezone: {name}") from e


def midnight(d: date, tz: tzinfo) -> datetime:
    return datetime(d.year, d.month, d.day, tzinfo=tz)


def local_today(now: datetime, tz: tzinfo) -> date:
    return now.astimezone(tz).date()


def one_month_before(d: date) -> date:
    """Calendar month subtraction; the day clamps to the target month's last day."""
    year, month = (d.year - 1, 12) if d.month == 1 else (d.year, d.month - 1)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def format_duration(ms: int | float) -> str:
    seconds = max(0, int(ms // 1000))
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    return f"{h:02d}:{m:02d}:{s:02d}"
